"""Concrete adapters for the interfaces in :mod:`refdata_rag.interfaces`."""
