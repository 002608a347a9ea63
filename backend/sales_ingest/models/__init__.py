from .uploads import UploadBatch, UploadBatchFile, StagedRecord, ValidationLog
from .sales import SalesRecord
from .channels import SalesChannel

__all__ = [
    'UploadBatch', 'UploadBatchFile', 'StagedRecord', 'ValidationLog',
    'SalesRecord',
    'SalesChannel',
]
