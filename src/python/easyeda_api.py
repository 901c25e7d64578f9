"""EasyEDA component API client.

Fetches the component record (symbol + package shape strings and metadata)
for an LCSC part number, and the two 3D mesh encodings for its model.
"""

import asyncio
import logging
import re
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from errors import ComponentNotFound, InputError, RemoteError
from importers.footprint import find_model_3d
from models import ComponentRecord

logger = logging.getLogger(__name__)

COMPONENT_URL = "https://easyeda.com/api/products/{identifier}/components?version=6.4.19.5"
OBJ_URL = "https://modules.easyeda.com/3dmodel/{uuid}"
STEP_URL = "https://modules.easyeda.com/qAxj6KHrDKw4blvCG8QJPs7Y/{uuid}"
USER_AGENT = "lcscbridge/0.1.0"

MAX_RETRIES = 3
RETRY_BACKOFF = 0.5
REQUEST_TIMEOUT = 30.0

_IDENTIFIER_RE = re.compile(r"C\d+")


def validate_identifier(identifier: str) -> str:
    """LCSC part numbers look like ``C2040``."""
    if not identifier.startswith("C") or len(identifier) < 2:
        raise InputError(f"Invalid LCSC ID: {identifier!r} (expected e.g. C2040)")
    return identifier


def extract_identifiers(text: str) -> list[str]:
    """Every ``C<digits>`` token of a batch file, in file order."""
    ids = _IDENTIFIER_RE.findall(text)
    if not ids:
        raise InputError("No valid LCSC IDs found in batch file")
    return ids


# ── Response schema ──────────────────────────────────────────────────────────

class Head(BaseModel):
    model_config = ConfigDict(extra="ignore")

    x: float = 0.0
    y: float = 0.0
    c_para: dict[str, Any] = Field(default_factory=dict)

    @field_validator("x", "y", mode="before")
    @classmethod
    def _lenient_float(cls, value):
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0

    @field_validator("c_para", mode="before")
    @classmethod
    def _dict_or_empty(cls, value):
        return value if isinstance(value, dict) else {}

    def text(self, key: str, default: str = "") -> str:
        value = self.c_para.get(key)
        return value if isinstance(value, str) else default


class DataStr(BaseModel):
    model_config = ConfigDict(extra="ignore")

    head: Head = Field(default_factory=Head)
    shape: list[str] = Field(default_factory=list)

    @field_validator("head", mode="before")
    @classmethod
    def _head_or_empty(cls, value):
        return value if isinstance(value, dict) else {}

    @field_validator("shape", mode="before")
    @classmethod
    def _strings_only(cls, value):
        if not isinstance(value, list):
            return []
        return [s for s in value if isinstance(s, str)]


class PackageDetail(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data_str: DataStr = Field(default_factory=DataStr, alias="dataStr")

    @field_validator("data_str", mode="before")
    @classmethod
    def _data_str_or_empty(cls, value):
        return value if isinstance(value, dict) else {}


class ApiResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str
    data_str: DataStr = Field(alias="dataStr")
    package_detail: Optional[PackageDetail] = Field(None, alias="packageDetail")
    lcsc: dict[str, Any] = Field(default_factory=dict)

    @field_validator("package_detail", mode="before")
    @classmethod
    def _package_detail(cls, value):
        # Some records carry the package shapes as a bare array
        if isinstance(value, list):
            return {"dataStr": {"shape": value}}
        if value is not None and not isinstance(value, dict):
            return None
        return value

    @field_validator("lcsc", mode="before")
    @classmethod
    def _lcsc_or_empty(cls, value):
        return value if isinstance(value, dict) else {}


class ApiResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: bool = True
    result: Optional[ApiResult] = None


def _missing_field(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {first['msg']}"


def record_from_payload(identifier: str, payload: Any) -> ComponentRecord:
    """Validate a decoded API body and flatten it into a ComponentRecord."""
    if not isinstance(payload, dict):
        raise RemoteError(f"Unexpected response for {identifier}: not a JSON object")
    if payload.get("success") is False:
        raise ComponentNotFound(identifier)
    if payload.get("result") is None:
        raise RemoteError(f"Invalid data for {identifier}: missing result field")
    try:
        response = ApiResponse.model_validate(payload)
    except ValidationError as e:
        raise RemoteError(f"Invalid data for {identifier}: {_missing_field(e)}")

    result = response.result
    symbol = result.data_str
    if result.package_detail is not None:
        package = result.package_detail.data_str
        footprint_shapes = tuple(package.shape)
        footprint_origin = (package.head.x, package.head.y)
    else:
        footprint_shapes = ()
        footprint_origin = (0.0, 0.0)

    prefix = symbol.head.text("pre", "U").rstrip("?") or "U"
    url = result.lcsc.get("url")

    return ComponentRecord(
        identifier=identifier,
        title=result.title,
        symbol_shapes=tuple(symbol.shape),
        symbol_origin=(symbol.head.x, symbol.head.y),
        footprint_shapes=footprint_shapes,
        footprint_origin=footprint_origin,
        model_3d=find_model_3d(footprint_shapes),
        prefix=prefix,
        manufacturer=symbol.head.text("BOM_Manufacturer"),
        datasheet=url if isinstance(url, str) else "",
        part_class=symbol.head.text("BOM_JLCPCB Part Class"),
    )


# ── Client ───────────────────────────────────────────────────────────────────

class EasyedaApi:
    """Async EasyEDA client. One instance may be shared by concurrent tasks."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None,
                 retries: int = MAX_RETRIES, backoff: float = RETRY_BACKOFF):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(REQUEST_TIMEOUT),
            follow_redirects=True,
        )
        self.retries = retries
        self.backoff = backoff

    async def __aenter__(self) -> "EasyedaApi":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    async def _get(self, url: str) -> httpx.Response:
        return await self._client.get(url, headers={"User-Agent": USER_AGENT})

    async def get_component(self, identifier: str) -> ComponentRecord:
        url = COMPONENT_URL.format(identifier=identifier)
        logger.info("Fetching component data for %s", identifier)
        try:
            response = await self._get(url)
        except httpx.HTTPError as e:
            raise RemoteError(f"Request for {identifier} failed: {e}")

        if not response.is_success:
            raise ComponentNotFound(identifier)
        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteError(f"Failed to parse JSON for {identifier}: {e}")

        record = record_from_payload(identifier, payload)
        logger.debug(
            "Component %s: %d symbol shapes, %d package shapes, 3D model: %s",
            identifier, len(record.symbol_shapes), len(record.footprint_shapes),
            record.model_3d.uuid if record.model_3d else "none",
        )
        return record

    async def _download(self, url: str, kind: str, uuid: str) -> bytes:
        for attempt in range(1, self.retries + 1):
            if attempt > 1:
                logger.info("Downloading 3D %s model: %s (retry %d/%d)",
                            kind, uuid, attempt, self.retries)
            else:
                logger.info("Downloading 3D %s model: %s", kind, uuid)
            try:
                response = await self._get(url)
                if response.is_success:
                    return response.content
                problem = f"HTTP {response.status_code}"
            except httpx.HTTPError as e:
                problem = str(e) or type(e).__name__

            if attempt == self.retries:
                raise RemoteError(f"Failed to download {kind} model {uuid}: {problem}")
            logger.warning("Failed to download %s model (%s), retrying...", kind, problem)
            await asyncio.sleep(attempt * self.backoff)
        raise RemoteError(f"Failed to download {kind} model {uuid}")

    async def download_obj(self, uuid: str) -> bytes:
        return await self._download(OBJ_URL.format(uuid=uuid), "OBJ", uuid)

    async def download_step(self, uuid: str) -> bytes:
        return await self._download(STEP_URL.format(uuid=uuid), "STEP", uuid)
