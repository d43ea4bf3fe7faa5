"""Certificate issuance and public verification."""

from .models import CERTIFICATE_TABLES_CQL, CertificateRecord, CertificateType


__all__ = ["CERTIFICATE_TABLES_CQL", "CertificateRecord", "CertificateType"]
