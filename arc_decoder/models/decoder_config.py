from dataclasses import dataclass, fields
from typing import Any, Mapping, Tuple

from arc_decoder.types.enums import SchemePolicy


@dataclass(frozen=True)
class DecoderConfig:
    """Tuning knobs for one ArcFileReader instance."""
    MIN_CHUNK_SIZE = 1024

    max_consecutive_invalid: int = 100
    probe_size: int = 64  # Bytes read after the payload to detect a misdeclared length
    scheme_policy: SchemePolicy = SchemePolicy.WARN
    allowed_schemes: Tuple[str, ...] = ("http://", "https://")
    append_trailing_bytes: bool = False
    chunk_size: int = 64 * 1024  # Compressed bytes fed to zlib per step

    def __post_init__(self):
        if self.max_consecutive_invalid < 1:
            raise ValueError("max_consecutive_invalid must be at least 1")
        if self.probe_size < 1:
            raise ValueError("probe_size must be at least 1")
        if self.chunk_size < self.MIN_CHUNK_SIZE:
            object.__setattr__(self, "chunk_size", self.MIN_CHUNK_SIZE)
        if isinstance(self.scheme_policy, str):
            object.__setattr__(self, "scheme_policy", SchemePolicy(self.scheme_policy.lower()))
        object.__setattr__(self, "allowed_schemes", tuple(s.lower() for s in self.allowed_schemes))

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "DecoderConfig":
        """Build a config from a plain mapping, e.g. parsed job settings.

        The Hadoop-style key ``io.file.buffer.size`` is accepted as an alias
        for ``chunk_size``.
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in values.items():
            if key == "io.file.buffer.size":
                key = "chunk_size"
            if key not in known:
                raise ValueError(f"Unknown decoder setting: {key}")
            kwargs[key] = value

        for int_key in ("max_consecutive_invalid", "probe_size", "chunk_size"):
            if int_key in kwargs:
                kwargs[int_key] = int(kwargs[int_key])
        if "append_trailing_bytes" in kwargs and isinstance(kwargs["append_trailing_bytes"], str):
            kwargs["append_trailing_bytes"] = kwargs["append_trailing_bytes"].lower() in ("1", "true", "yes")
        if "allowed_schemes" in kwargs and isinstance(kwargs["allowed_schemes"], str):
            kwargs["allowed_schemes"] = tuple(s.strip() for s in kwargs["allowed_schemes"].split(",") if s.strip())
        return cls(**kwargs)
