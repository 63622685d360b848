import argparse
import logging
import time
from pathlib import Path

from arc_decoder.decoders.arc_file_reader import ArcFileReader
from arc_decoder.exporters.metadata_exporter import ArcMetadataExporter
from arc_decoder.exporters.record_serializer import RecordSerializer
from arc_decoder.models.decoder_config import DecoderConfig
from arc_decoder.types.enums import SchemePolicy
from arc_decoder.utils.handlers import default_worker_count, process_files_parallel
from arc_decoder.utils.record_filter import ArcRecordFilter


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Decode ARC web-archive files (.arc.gz)")
    parser.add_argument("inputs", nargs="+", type=Path, help="ARC files to decode")
    parser.add_argument("--csv", type=Path, help="Write per-record metadata to this CSV file")
    parser.add_argument("--binary", type=Path,
                        help="Write decoded records in binary form to this file (single input only)")
    parser.add_argument("--workers", type=int, default=None,
                        help=f"Worker processes (default: {default_worker_count()})")
    parser.add_argument("--max-invalid", type=int, default=DecoderConfig.max_consecutive_invalid,
                        help="Consecutive invalid records tolerated before aborting")
    parser.add_argument("--reject-unknown-schemes", action="store_true",
                        help="Treat non-HTTP record URLs as malformed instead of warning")
    parser.add_argument("--append-trailing-bytes", action="store_true",
                        help="Keep bytes found after a payload instead of skipping them")
    parser.add_argument("--no-http", action="store_true", help="Do not parse HTTP envelopes")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # ============================================================
    # LOGGING CONFIGURATION
    # ============================================================
    LOG_LEVEL = {0: logging.WARNING, 1: logging.INFO}.get(args.verbose, logging.DEBUG)

    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("arc_decoder").setLevel(LOG_LEVEL)

    # ============================================================
    # CONFIGURATION
    # ============================================================
    config = DecoderConfig(
        max_consecutive_invalid=args.max_invalid,
        scheme_policy=SchemePolicy.REJECT if args.reject_unknown_schemes else SchemePolicy.WARN,
        append_trailing_bytes=args.append_trailing_bytes,
    )
    inputs = [str(path) for path in args.inputs]

    print(f"\n{'=' * 70}")
    print("ARC Record Decoder")
    print(f"{'=' * 70}")
    for path in inputs:
        print(f"Input file: {path}")
    print(f"{'=' * 70}\n")

    # ============================================================
    # BINARY EXPORT
    # ============================================================
    if args.binary:
        if len(inputs) != 1:
            print("--binary takes exactly one input file")
            return 2
        start = time.time()
        with ArcFileReader.from_path(inputs[0], config) as reader, open(args.binary, "wb") as out:
            written = RecordSerializer.write_records(reader.read_records(), out)
        print(f"Wrote {written:,} records to {args.binary} in {time.time() - start:.2f}s\n")

    # ============================================================
    # METADATA
    # ============================================================
    start = time.time()

    def report(done: int, total: int, name: str) -> None:
        print(f"  [{done}/{total}] {name}")

    df = process_files_parallel(inputs, config, parse_http=not args.no_http,
                                n_workers=args.workers, progress=report)
    print(f"\nDecoded {len(df):,} records in {time.time() - start:.2f}s\n")

    stats = ArcRecordFilter.get_statistics(df)
    print("Statistics:")
    for key, value in stats.items():
        print(f"  {key:<24} {value}")

    top = ArcRecordFilter.get_top_domains(df, n=10)
    if not top.empty:
        print("\nTop hosts:")
        print(top.to_string(index=False))

    if args.csv:
        args.csv.parent.mkdir(parents=True, exist_ok=True)
        ArcMetadataExporter.export_to_csv(df, str(args.csv))
        print(f"\nMetadata written to {args.csv}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
