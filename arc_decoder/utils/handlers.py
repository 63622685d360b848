import logging
import os
from multiprocessing import Pool, cpu_count
from typing import Callable, List, Optional, Sequence, Tuple

import pandas as pd

from arc_decoder.decoders.arc_file_reader import ArcFileReader
from arc_decoder.exporters.metadata_exporter import ArcMetadataExporter
from arc_decoder.models.decoder_config import DecoderConfig

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]


def default_worker_count() -> int:
    """Leave one or two cores free on bigger machines."""
    total_cores = cpu_count()
    if total_cores <= 2:
        return 1
    elif total_cores <= 4:
        return total_cores - 1
    return total_cores - 2


def process_file(args: Tuple[str, Optional[DecoderConfig], bool]) -> pd.DataFrame:
    """
    Decode one .arc.gz file into a metadata DataFrame.

    Top-level function so that it can be pickled for Pool workers. Each call
    owns its own reader; nothing is shared between files.
    """
    file_path, config, parse_http = args
    with ArcFileReader.from_path(file_path, config) as reader:
        df = ArcMetadataExporter.records_to_dataframe(reader.read_records(), parse_http=parse_http)
        logger.info("Decoded %s: %d records, %d skipped units",
                    file_path, reader.records_emitted, reader.records_skipped)

    df.insert(0, 'Source_file', os.path.basename(str(file_path)))
    return df


def process_files_sequential(paths: Sequence[str],
                             config: Optional[DecoderConfig] = None,
                             parse_http: bool = True,
                             progress: Optional[ProgressCallback] = None) -> pd.DataFrame:
    all_dfs = []
    for done, path in enumerate(paths, start=1):
        all_dfs.append(process_file((path, config, parse_http)))
        if progress:
            progress(done, len(paths), str(path))
    return _merge(all_dfs)


def process_files_parallel(paths: Sequence[str],
                           config: Optional[DecoderConfig] = None,
                           parse_http: bool = True,
                           n_workers: Optional[int] = None,
                           progress: Optional[ProgressCallback] = None) -> pd.DataFrame:
    """Decode several files in a worker Pool, one reader per file, and merge the results."""
    n_workers = n_workers or default_worker_count()
    if n_workers <= 1 or len(paths) <= 1:
        return process_files_sequential(paths, config, parse_http, progress)

    logger.info("Processing %d files with %d workers", len(paths), n_workers)
    tasks = [(path, config, parse_http) for path in paths]

    all_dfs: List[pd.DataFrame] = []
    with Pool(processes=min(n_workers, len(paths))) as pool:
        for done, df_file in enumerate(pool.imap_unordered(process_file, tasks), start=1):
            all_dfs.append(df_file)
            if progress:
                progress(done, len(paths), df_file['Source_file'].iat[0] if not df_file.empty else "")

    return _merge(all_dfs)


def _merge(all_dfs: List[pd.DataFrame]) -> pd.DataFrame:
    non_empty = [df for df in all_dfs if not df.empty]
    if not non_empty:
        return pd.DataFrame(columns=['Source_file'] + ArcMetadataExporter.ALL_COLUMNS)
    return pd.concat(non_empty, ignore_index=True)
