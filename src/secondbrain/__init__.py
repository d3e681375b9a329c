"""SecondBrain - keep a document folder in sync with a searchable knowledge base."""

__version__ = "0.1.0"
