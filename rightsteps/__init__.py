"""RightSteps: upload documents and get grounded AI explanations."""

__version__ = "0.1.0"
