from __future__ import annotations

import os
from dataclasses import dataclass, replace

from cldf.core.hash import DEFAULT_DIGEST_ALGORITHM, DIGEST_ALGORITHMS


STRICT = "strict"
LENIENT = "lenient"
MODES = (STRICT, LENIENT)


@dataclass(frozen=True)
class CodecConfig:
    """Read-only settings shared by the codec, verifier and merge engine.

    signing_key / verify_key are Ed25519 keys given as PEM bytes or 32-byte
    raw keys in hex (see cldf.protocol.seal).
    """

    mode: str = STRICT
    digest_algorithm: str = DEFAULT_DIGEST_ALGORITHM
    pretty_print: bool = False
    validate_clids: bool = True
    signing_key: bytes | None = None
    verify_key: bytes | None = None

    def __post_init__(self) -> None:
        if self.mode not in MODES:
            raise ValueError(f"mode must be one of {list(MODES)}, got {self.mode!r}")
        if self.digest_algorithm not in DIGEST_ALGORITHMS:
            raise ValueError(
                f"digest_algorithm must be one of {sorted(DIGEST_ALGORITHMS)}, got {self.digest_algorithm!r}"
            )

    @property
    def strict(self) -> bool:
        return self.mode == STRICT

    def with_mode(self, mode: str) -> "CodecConfig":
        return replace(self, mode=mode)

    @classmethod
    def from_env(cls, **overrides) -> "CodecConfig":
        """Build a config from CLDF_MODE, CLDF_DIGEST_ALGORITHM and CLDF_PRETTY_PRINT.

        Keyword overrides win over the environment.
        """

        values: dict = {}
        mode = os.environ.get("CLDF_MODE")
        if mode:
            values["mode"] = mode.strip().lower()
        algorithm = os.environ.get("CLDF_DIGEST_ALGORITHM")
        if algorithm:
            values["digest_algorithm"] = algorithm.strip().upper()
        pretty = os.environ.get("CLDF_PRETTY_PRINT")
        if pretty is not None:
            values["pretty_print"] = pretty.strip() == "1"
        values.update(overrides)
        return cls(**values)


DEFAULT_CONFIG = CodecConfig()
LENIENT_CONFIG = CodecConfig(mode=LENIENT)
