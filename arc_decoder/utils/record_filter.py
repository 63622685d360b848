import numpy as np
import pandas as pd
from typing import Optional


class ArcRecordFilter:
    """
    Filters and summaries over the DataFrame built by ArcMetadataExporter.
    Filters gracefully handle missing columns by returning the input unchanged.
    """
    PAYLOAD_PERCENTILES = [50, 90, 99]

    @staticmethod
    def filter_html(df: pd.DataFrame) -> pd.DataFrame:
        """Keep records whose declared content type mentions html"""
        if 'Content_type' not in df.columns:
            return df
        mask = df['Content_type'].astype(str).str.contains('html', case=False, na=False)
        return df[mask].reset_index(drop=True)

    @staticmethod
    def filter_by_content_type(df: pd.DataFrame, prefix: str) -> pd.DataFrame:
        """Keep records whose declared content type starts with prefix (e.g. 'image/')"""
        if 'Content_type' not in df.columns:
            return df
        mask = df['Content_type'].astype(str).str.lower().str.startswith(prefix.lower())
        return df[mask].reset_index(drop=True)

    @staticmethod
    def filter_by_status(df: pd.DataFrame,
                         min_status: Optional[int] = None,
                         max_status: Optional[int] = None) -> pd.DataFrame:
        """Filter by HTTP status range, inclusive"""
        if 'HTTP_status' not in df.columns:
            return df

        result = df[df['HTTP_status'].notna()]
        if min_status is not None:
            result = result[result['HTTP_status'] >= min_status]
        if max_status is not None:
            result = result[result['HTTP_status'] <= max_status]
        return result.reset_index(drop=True)

    @staticmethod
    def filter_successful(df: pd.DataFrame) -> pd.DataFrame:
        """HTTP 200 only"""
        return ArcRecordFilter.filter_by_status(df, 200, 200)

    @staticmethod
    def filter_by_domain(df: pd.DataFrame, domain: str) -> pd.DataFrame:
        """Keep records whose host is the domain or one of its subdomains"""
        if 'Host' not in df.columns:
            return df
        domain = domain.lower().lstrip('.')
        hosts = df['Host'].astype(str)
        mask = (hosts == domain) | hosts.str.endswith('.' + domain)
        return df[mask].reset_index(drop=True)

    @staticmethod
    def filter_suspect(df: pd.DataFrame, include_suspect: bool = False) -> pd.DataFrame:
        """Drop (or keep only) records with a length mismatch or trailing bytes"""
        if 'Length_mismatch' not in df.columns or 'Trailing_bytes' not in df.columns:
            return df
        suspect = df['Length_mismatch'] | df['Trailing_bytes']
        if include_suspect:
            return df[suspect].reset_index(drop=True)
        return df[~suspect].reset_index(drop=True)

    @staticmethod
    def get_status_distribution(df: pd.DataFrame) -> dict:
        if 'HTTP_status' not in df.columns:
            return {}
        counts = df['HTTP_status'].dropna().astype(int).value_counts().sort_index()
        return {int(status): int(count) for status, count in counts.items()}

    @staticmethod
    def get_payload_percentiles(df: pd.DataFrame) -> Optional[dict]:
        if 'Payload_length' not in df.columns or df.empty:
            return None
        lengths = df['Payload_length'].dropna().to_numpy(dtype=np.int64)
        if lengths.size == 0:
            return None
        values = np.percentile(lengths, ArcRecordFilter.PAYLOAD_PERCENTILES)
        return {f"p{p}": float(v) for p, v in zip(ArcRecordFilter.PAYLOAD_PERCENTILES, values)}

    @staticmethod
    def get_statistics(df: pd.DataFrame) -> dict:
        """Get basic statistics for the dataset"""
        has = df.columns.__contains__
        return {
            'total_records': len(df),
            'unique_hosts': df['Host'].nunique() if has('Host') else 0,
            'html_records': len(ArcRecordFilter.filter_html(df)) if has('Content_type') else None,
            'http_success': len(ArcRecordFilter.filter_successful(df)) if has('HTTP_status') else None,
            'status_distribution': ArcRecordFilter.get_status_distribution(df),
            'unparsed_status': int((df['HTTP_status'] == -1).sum()) if has('HTTP_status') else None,
            'length_mismatch_count': int(df['Length_mismatch'].sum()) if has('Length_mismatch') else None,
            'trailing_bytes_count': int(df['Trailing_bytes'].sum()) if has('Trailing_bytes') else None,
            'total_payload_bytes': int(df['Payload_length'].sum()) if has('Payload_length') else 0,
            'avg_payload_bytes': float(df['Payload_length'].mean()) if has('Payload_length') and len(df) else None,
            'payload_percentiles': ArcRecordFilter.get_payload_percentiles(df),
            'archive_date_range': (df['Archive_date'].min(), df['Archive_date'].max())
            if has('Archive_date') and df['Archive_date'].notna().any() else None,
        }

    @staticmethod
    def get_top_domains(df: pd.DataFrame, n: int = 10) -> pd.DataFrame:
        """Get top N hosts by number of records"""
        if 'Host' not in df.columns:
            return pd.DataFrame()
        counts = df['Host'].astype(str).value_counts().head(n)
        return counts.rename_axis('Host').reset_index(name='record_count')
