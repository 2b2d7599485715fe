"""
Erros tipados do catalogo. Os services levantam estes erros; o app FastAPI
converte cada um em resposta JSON com o status_code correspondente.
"""
from __future__ import annotations


class CatalogError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(CatalogError):
    status_code = 400


class NotFound(CatalogError):
    status_code = 404


class Conflict(CatalogError):
    status_code = 409


class MediaStoreError(CatalogError):
    status_code = 502


class InvalidContent(MediaStoreError):
    status_code = 400


class SizeExceeded(MediaStoreError):
    status_code = 413


class StoreUnavailable(MediaStoreError):
    status_code = 502


class TransactionError(CatalogError):
    status_code = 500
