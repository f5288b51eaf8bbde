"""
Pustaka - Library Research Assistant

A retrieval-augmented question answering service over a university library
catalogue and uploaded PDF documents.

Features:
- Page-by-page PDF extraction with boundary-aware chunking
- Gemini embeddings stored in a Pinecone index
- Search modes over books, PDFs, or both
- Token-by-token answer streaming as Server-Sent Events
"""

__version__ = "0.1.0"
__author__ = "Pustaka Team"
