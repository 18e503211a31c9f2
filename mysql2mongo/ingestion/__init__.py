from mysql2mongo.ingestion.base import DocumentSink, RowSource
from mysql2mongo.ingestion.copy_engine import CopyEngine, CopyResult, RowFailure, WriteFailurePolicy
from mysql2mongo.ingestion.flow import WatermarkGate
from mysql2mongo.ingestion.mongo_sink import MongoSink
from mysql2mongo.ingestion.mysql_source import MySQLSource, build_select

__all__ = [
    "DocumentSink",
    "RowSource",
    "CopyEngine",
    "CopyResult",
    "RowFailure",
    "WriteFailurePolicy",
    "WatermarkGate",
    "MongoSink",
    "MySQLSource",
    "build_select",
]
