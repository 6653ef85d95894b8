"""Requests to and responses from the Rust playground."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

log = logging.getLogger(__name__)

PLAYGROUND_URL = "https://play.rust-lang.org"


class Channel(Enum):
    STABLE = "stable"
    BETA = "beta"
    NIGHTLY = "nightly"

    @classmethod
    def parse(cls, text: str) -> Channel:
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"invalid release channel `{text}`") from None


class Edition(Enum):
    E2015 = "2015"
    E2018 = "2018"
    E2021 = "2021"
    E2024 = "2024"

    @classmethod
    def parse(cls, text: str) -> Edition:
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"invalid edition `{text}`") from None


class Mode(Enum):
    DEBUG = "debug"
    RELEASE = "release"

    @classmethod
    def parse(cls, text: str) -> Mode:
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"invalid compilation mode `{text}`") from None


class AliasingModel(Enum):
    STACKED = "stacked"
    TREE = "tree"

    @classmethod
    def parse(cls, text: str) -> AliasingModel:
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"invalid aliasing model `{text}`") from None


class CrateType(Enum):
    BINARY = "bin"
    LIBRARY = "lib"


@dataclass
class CommandFlags:
    """Options a playground command was invoked with."""

    channel: Channel = Channel.NIGHTLY
    mode: Mode = Mode.DEBUG
    edition: Edition = Edition.E2024
    warn: bool = False
    run: bool = False
    aliasing_model: AliasingModel = AliasingModel.STACKED


@dataclass
class PlayResult:
    """The outcome of running something on the playground."""

    success: bool
    stdout: str
    stderr: str

    @classmethod
    def from_json(cls, data: Any) -> PlayResult:
        """Read a response; a lone ``error`` field becomes a failed result with that stderr."""
        if isinstance(data, Mapping):
            error = data.get("error")
            if isinstance(error, str):
                return cls(success=False, stdout="", stderr=error)
            success, stdout, stderr = data.get("success"), data.get("stdout"), data.get("stderr")
            if isinstance(success, bool) and isinstance(stdout, str) and isinstance(stderr, str):
                return cls(success=success, stdout=stdout, stderr=stderr)
        raise ValueError("playground response matches neither a result nor an error")


def url_from_gist(flags: CommandFlags, gist_id: str) -> str:
    return (
        f"{PLAYGROUND_URL}/?version={flags.channel.value}&mode={flags.mode.value}"
        f"&edition={flags.edition.value}&gist={gist_id}"
    )


def playground_request(
    code: str,
    channel: Channel,
    edition: Edition,
    mode: Mode,
    crate_type: CrateType,
    tests: bool,
) -> dict[str, Any]:
    return {
        "channel": channel.value,
        "edition": edition.value,
        "code": code,
        "crateType": crate_type.value,
        "mode": mode.value,
        "tests": tests,
    }


def miri_request(code: str, edition: Edition, aliasing_model: AliasingModel) -> dict[str, Any]:
    return {"edition": edition.value, "aliasingModel": aliasing_model.value, "code": code}


def macro_expansion_request(code: str, edition: Edition) -> dict[str, Any]:
    return {"edition": edition.value, "code": code}


def clippy_request(code: str, edition: Edition, crate_type: CrateType) -> dict[str, Any]:
    return {"edition": edition.value, "crateType": crate_type.value, "code": code}


def format_request(code: str, edition: Edition) -> dict[str, Any]:
    return {"code": code, "edition": edition.value}


class PlaygroundClient:
    """Talks to the playground's HTTP API."""

    def __init__(self, http: httpx.AsyncClient | None = None) -> None:
        self._http = http if http is not None else httpx.AsyncClient()

    async def _post(self, path: str, payload: Mapping[str, Any]) -> Any:
        response = await self._http.post(f"{PLAYGROUND_URL}{path}", json=dict(payload))
        return response.json()

    async def execute(self, request: Mapping[str, Any]) -> PlayResult:
        return PlayResult.from_json(await self._post("/execute", request))

    async def miri(self, request: Mapping[str, Any]) -> PlayResult:
        return PlayResult.from_json(await self._post("/miri", request))

    async def macro_expansion(self, request: Mapping[str, Any]) -> PlayResult:
        return PlayResult.from_json(await self._post("/macro-expansion", request))

    async def clippy(self, request: Mapping[str, Any]) -> PlayResult:
        return PlayResult.from_json(await self._post("/clippy", request))

    async def post_gist(self, code: str) -> str:
        """Save ``code`` as a gist and return its id."""
        data = await self._post("/meta/gist/", {"code": code})
        log.info("gist response: %r", data)
        gist_id = data.get("id") if isinstance(data, Mapping) else None
        if not isinstance(gist_id, str):
            raise LookupError("no gist found")
        return gist_id

    async def apply_online_rustfmt(self, code: str, edition: Edition) -> PlayResult:
        """Format ``code``; the formatted code is returned as stdout."""
        data = await self._post("/format", format_request(code, edition))
        if not isinstance(data, Mapping):
            raise ValueError("invalid format response")
        success, formatted, stderr = data.get("success"), data.get("code"), data.get("stderr")
        if not (isinstance(success, bool) and isinstance(formatted, str) and isinstance(stderr, str)):
            raise ValueError("invalid format response")
        return PlayResult(success=success, stdout=formatted, stderr=stderr)