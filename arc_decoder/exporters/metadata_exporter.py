import logging
from typing import Iterable

import pandas as pd

from arc_decoder.models.record import Record

logger = logging.getLogger(__name__)


class ArcMetadataExporter:
    """
    Flattens ARC records into a pandas DataFrame, one row per record.
    Payload bytes are not copied into the frame; only lengths and parsed
    HTTP metadata are kept.
    """

    ALL_COLUMNS = [
        # ARC header
        'URL',
        'Host',
        'IP',
        'Timestamp',  # Raw yyyyMMddHHmmss
        'Archive_date',
        'Content_type',  # Declared in the ARC header
        'Declared_length',
        'Payload_length',

        # HTTP envelope (None when not parsed or not HTTP)
        'HTTP_status',
        'HTTP_content_type',
        'HTTP_header_count',
        'Body_length',

        # Anomalies
        'Length_mismatch',
        'Trailing_bytes',
        'Block_offset',
    ]

    @staticmethod
    def records_to_dataframe(records: Iterable[Record], parse_http: bool = True) -> pd.DataFrame:
        # Build by columns to avoid a list of dicts
        columns = ArcMetadataExporter.ALL_COLUMNS
        data_cols = {col: [] for col in columns}

        for record in records:
            row = ArcMetadataExporter.record_to_row(record, parse_http=parse_http)
            for col in columns:
                data_cols[col].append(row[col])

        df = pd.DataFrame(data_cols, columns=columns)
        return ArcMetadataExporter._downcast_dtypes(df)

    @staticmethod
    def record_to_row(record: Record, parse_http: bool = True) -> dict:
        row = {col: None for col in ArcMetadataExporter.ALL_COLUMNS}
        header = record.header
        if header is not None:
            row['URL'] = header.url
            row['Host'] = header.host
            row['IP'] = header.origin_address
            row['Timestamp'] = header.timestamp
            row['Archive_date'] = header.archive_date
            row['Content_type'] = header.declared_content_type
            row['Declared_length'] = header.declared_length

        row['Payload_length'] = record.actual_length
        row['Length_mismatch'] = record.length_mismatch
        row['Trailing_bytes'] = record.trailing_bytes
        row['Block_offset'] = record.block_offset

        if parse_http:
            envelope = record.envelope
            if envelope is not None:
                row['HTTP_status'] = envelope.status_code
                row['HTTP_content_type'] = envelope.get_header('Content-Type')
                row['HTTP_header_count'] = len(envelope.headers)
                row['Body_length'] = record.actual_length - envelope.body_offset

        return row

    @staticmethod
    def _downcast_dtypes(df: pd.DataFrame) -> pd.DataFrame:
        if df is None or df.empty:
            return df

        int_cols = ['Declared_length', 'Payload_length', 'HTTP_status', 'HTTP_header_count',
                    'Body_length', 'Block_offset']
        for col in int_cols:
            if col in df.columns:
                df[col] = pd.to_numeric(df[col], errors='coerce').astype('Int64')

        for col in ['Length_mismatch', 'Trailing_bytes']:
            if col in df.columns:
                df[col] = df[col].astype(bool)

        if 'Archive_date' in df.columns:
            df['Archive_date'] = pd.to_datetime(df['Archive_date'], utc=True, errors='coerce')

        for col in ['Host', 'Content_type', 'HTTP_content_type']:
            if col in df.columns and df[col].notna().any():
                df[col] = df[col].astype('category')

        return df

    @staticmethod
    def export_to_csv(df: pd.DataFrame, output_path: str, na_rep: str = 'N/A') -> None:
        df.to_csv(output_path, index=False, na_rep=na_rep)
        logger.info("Exported %d records to %s", len(df), output_path)

    @staticmethod
    def get_column_info() -> dict:
        return {
            'URL': 'Record URL from the ARC header',
            'Host': 'Lower-cased host name of the URL',
            'IP': 'Origin IP address from the ARC header',
            'Timestamp': 'Archive date, raw yyyyMMddHHmmss',
            'Archive_date': 'Archive date (UTC)',
            'Content_type': 'Content type declared in the ARC header',
            'Declared_length': 'Payload length declared in the ARC header',
            'Payload_length': 'Payload bytes actually read',
            'HTTP_status': 'HTTP status code (-1 if unparseable)',
            'HTTP_content_type': 'Content-Type header of the HTTP response',
            'HTTP_header_count': 'Number of HTTP headers',
            'Body_length': 'HTTP body length in bytes',
            'Length_mismatch': 'Payload length differs from declared length',
            'Trailing_bytes': 'Unexpected bytes found after the payload',
            'Block_offset': 'Compressed input offset of the record unit',
        }
