from .document import DocumentRecord
