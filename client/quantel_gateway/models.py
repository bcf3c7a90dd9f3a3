"""Pydantic models for values sent to and from a Quantel gateway.

Attribute names are snake_case; the gateway's camelCase (and, for clips,
PascalCase) keys are kept as aliases so payloads round-trip unchanged.
Unknown keys are preserved because the gateway protocol is external.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializeAsAny,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel


class GatewayModel(BaseModel):
    """Base for gateway payloads: camelCase aliases, extra keys kept."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_wire(self) -> dict[str, Any]:
        """Serialize using gateway key names, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class GatewayErrorResponse(BaseModel):
    """Structured error body returned by the gateway."""
    status: int
    message: str
    stack: str


class ZoneInfo(GatewayModel):
    type: str = "ZonePortal"
    zone_number: Optional[int] = None
    zone_name: Optional[str] = None
    is_remote: bool = False


class ServerInfo(GatewayModel):
    """Details of a video server as listed under ``/{zone}/server``."""

    type: str = "Server"
    ident: Optional[int] = None
    down: bool = False
    name: Optional[str] = None
    num_channels: Optional[int] = None
    pools: Optional[list[int]] = None
    # Sparse: entries may be empty strings or null.
    port_names: Optional[list[Optional[str]]] = None
    chan_ports: Optional[list[Optional[str]]] = None

    def assigned_port_names(self) -> list[str]:
        """Port names currently assigned on the server, blanks skipped."""
        return [name for name in (self.port_names or []) if name]

    def port_on_channel(self, channel: int) -> str | None:
        """Name of the port mapped to ``channel``, or None when unmapped."""
        chan_ports = self.chan_ports or []
        if channel < 0 or channel >= len(chan_ports):
            return None
        return chan_ports[channel] or None


class PortRef(GatewayModel):
    server_id: Optional[Union[int, str]] = Field(default=None, alias="serverID")
    port_name: Optional[str] = None


class PortInfo(PortRef):
    """Details of a port (logical control device)."""
    type: Optional[str] = "PortInfo"
    channel_no: Optional[int] = None
    port_id: Optional[int] = Field(default=None, alias="portID")
    audio_only: Optional[bool] = None
    assigned: Optional[bool] = None


class PortStatus(PortRef):
    """Snapshot of the current status of a port."""
    type: str = "PortStatus"
    port_id: Optional[int] = Field(default=None, alias="portID")
    ref_time: Optional[str] = None
    port_time: Optional[str] = None
    speed: Optional[float] = None
    offset: Optional[int] = None
    status: Optional[str] = None
    end_of_data: Optional[int] = None
    frames_unused: Optional[int] = None
    output_time: Optional[str] = None
    channels: list[int] = Field(default_factory=list)
    video_format: Optional[str] = None


class ReleaseStatus(PortRef):
    type: str = "ReleaseStatus"
    released: Optional[bool] = None
    reset_only: bool = False


class ClipModel(BaseModel):
    """Base for clip payloads, whose keys the gateway sends in PascalCase."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ClipDataSummary(ClipModel):
    """Summary details of a clip, as returned by a clip search."""

    type: str = "ClipDataSummary"
    ClipID: Optional[int] = None
    ClipGUID: Optional[str] = None
    CloneId: Optional[int] = None
    Completed: Optional[str] = None
    Created: Optional[str] = None
    Description: Optional[str] = None
    Frames: Optional[str] = None
    Owner: Optional[str] = None
    PoolID: Optional[int] = None
    Title: Optional[str] = None


class ClipData(ClipDataSummary):
    type: str = "ClipData"
    Category: Optional[str] = None
    CloneZone: Optional[int] = None
    Destination: Optional[int] = None
    Expiry: Optional[str] = None
    HasEditData: Optional[int] = None
    Inpoint: Optional[int] = None
    JobID: Optional[int] = None
    Modified: Optional[str] = None
    NumAudTracks: Optional[int] = None
    Number: Optional[int] = None
    NumVidTracks: Optional[int] = None
    Outpoint: Optional[int] = None
    PlaceHolder: Optional[bool] = None
    PlayAspect: Optional[str] = None
    PublishedBy: Optional[str] = None
    Register: Optional[str] = None
    Tape: Optional[str] = None
    Template: Optional[int] = None
    UnEdited: Optional[int] = None
    PlayMode: Optional[str] = None
    MosActive: Optional[bool] = None
    Division: Optional[str] = None
    AudioFormats: Optional[str] = None
    VideoFormats: Optional[str] = None
    Protection: Optional[str] = None
    VDCPID: Optional[str] = None
    PublishCompleted: Optional[str] = None


class ClipSearchQuery(ClipModel):
    """Clip search: any clip property plus ``limit``.

    Properties not declared here may be passed as extra keyword arguments.
    """

    limit: Optional[int] = None
    ClipID: Optional[int] = None
    CloneID: Optional[int] = None
    Completed: Optional[str] = None
    Created: Optional[str] = None
    Description: Optional[str] = None
    Frames: Optional[str] = None
    Owner: Optional[str] = None
    PoolID: Optional[int] = None
    Title: Optional[str] = None
    Category: Optional[str] = None
    Modified: Optional[str] = None
    Division: Optional[str] = None
    ClipGUID: Optional[str] = None
    VDCPID: Optional[str] = None

    def to_query(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


# -- Fragments --------------------------------------------------------------


class ServerFragment(GatewayModel):
    """Base fragment; unrecognised fragment types are parsed as this."""
    type: str
    track_num: int = 0
    start: Optional[int] = None
    finish: Optional[int] = None


class PositionData(ServerFragment):
    rush_id: Optional[str] = Field(default=None, alias="rushID")
    format: Optional[int] = None
    pool_id: Optional[int] = Field(default=None, alias="poolID")
    pool_frame: Optional[int] = None
    skew: int = 0
    rush_frame: Optional[int] = None


class VideoFragment(PositionData):
    type: Literal["VideoFragment"] = "VideoFragment"


class AudioFragment(PositionData):
    type: Literal["AudioFragment"] = "AudioFragment"


class AUXFragment(PositionData):
    type: Literal["AUXFragment"] = "AUXFragment"


class FlagsFragment(ServerFragment):
    type: Literal["FlagsFragment"] = "FlagsFragment"
    flags: Optional[int] = None


class TimecodeFragment(ServerFragment):
    type: Literal["TimecodeFragment"] = "TimecodeFragment"
    start_timecode: Optional[str] = None
    user_bits: int = 0


class AspectFragment(ServerFragment):
    type: Literal["AspectFragment"] = "AspectFragment"
    width: Optional[int] = None
    height: Optional[int] = None


class CropFragment(ServerFragment):
    type: Literal["CropFragment"] = "CropFragment"
    x: Optional[int] = None
    y: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None


class PanZoomFragment(ServerFragment):
    type: Literal["PanZoomFragment"] = "PanZoomFragment"
    x: Optional[int] = None
    y: Optional[int] = None
    h_zoom: Optional[float] = None
    # The gateway spells this key "vZoon".
    v_zoom: Optional[float] = Field(default=None, alias="vZoon")


class SpeedFragment(ServerFragment):
    type: Literal["SpeedFragment"] = "SpeedFragment"
    speed: Optional[float] = None
    profile: Optional[int] = None


class MultiCamFragment(ServerFragment):
    type: Literal["MultiCamFragment"] = "MultiCamFragment"
    stream: Optional[int] = None


class CCFragment(ServerFragment):
    type: Literal["CCFragment"] = "CCFragment"
    cc_id: Optional[str] = Field(default=None, alias="ccID")
    cc_type: Optional[int] = None
    effect_id: Optional[int] = Field(default=None, alias="effectID")


class NoteFragment(ServerFragment):
    type: Literal["NoteFragment"] = "NoteFragment"
    note_id: Optional[int] = Field(default=None, alias="noteID")
    aux: Optional[int] = None
    mask: Optional[int] = None
    note: Optional[str] = None


class EffectFragment(ServerFragment):
    type: Literal["EffectFragment"] = "EffectFragment"
    effect_id: Optional[int] = Field(default=None, alias="effectID")


FRAGMENT_TYPES: dict[str, type[ServerFragment]] = {
    cls.model_fields["type"].default: cls
    for cls in (
        VideoFragment,
        AudioFragment,
        AUXFragment,
        FlagsFragment,
        TimecodeFragment,
        AspectFragment,
        CropFragment,
        PanZoomFragment,
        SpeedFragment,
        MultiCamFragment,
        CCFragment,
        NoteFragment,
        EffectFragment,
    )
}


def parse_fragment(data: ServerFragment | dict[str, Any]) -> ServerFragment:
    """Build the fragment model matching ``data["type"]``.

    A fragment that does not fit its typed model is kept as a plain
    :class:`ServerFragment`, extra keys included.
    """
    if isinstance(data, ServerFragment):
        return data
    cls = FRAGMENT_TYPES.get(str(data.get("type")), ServerFragment)
    try:
        return cls.model_validate(data)
    except ValidationError:
        return ServerFragment.model_validate(data)


class ClipRef(GatewayModel):
    clip_id: Optional[int] = Field(default=None, alias="clipID")


class ServerFragments(ClipRef):
    """Fragments of a clip, or of whatever is loaded on a port (clipID -1)."""

    type: str = "ServerFragments"
    fragments: list[SerializeAsAny[ServerFragment]] = Field(default_factory=list)

    @field_validator("fragments", mode="before")
    @classmethod
    def _parse_fragments(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [parse_fragment(item) for item in value]
        return value


class PortLoadStatus(PortRef):
    type: str = "PortLoadStatus"
    fragment_count: Optional[int] = None
    offset: Optional[int] = None


class Trigger(str, Enum):
    """Port trigger kinds understood by the gateway."""
    START = "START"
    STOP = "STOP"
    JUMP = "JUMP"
    TRANSITION = "TRANSITION"


class Priority(str, Enum):
    STANDARD = "STANDARD"
    HIGH = "HIGH"


class TriggerResult(PortRef):
    type: str = "TriggerResult"
    trigger: Optional[str] = None
    offset: Optional[int] = None
    success: Optional[bool] = None


class JumpResult(PortRef):
    type: str = "HardJumpResult"
    offset: Optional[int] = None
    success: Optional[bool] = None


class WipeResult(PortRef):
    type: str = "WipeResult"
    start: Optional[int] = None
    frames: Optional[int] = None
    wiped: Optional[bool] = None


class ConnectionDetails(GatewayModel):
    """Connection from the gateway to an ISA manager.

    ``refs`` lists the alternative managers and ``robin`` is the gateway's
    round-robin failover counter; both are passed through uninterpreted.
    """

    type: str = "ConnectionDetails"
    isa_ior: Optional[str] = Field(default=None, alias="isaIOR")
    href: Optional[str] = None
    refs: list[str] = Field(default_factory=list)
    robin: int = 0


class CloneInfo(GatewayModel):
    """Request to clone a clip into a pool, optionally from another zone."""
    zone_id: Optional[int] = Field(default=None, alias="zoneID")
    clip_id: Optional[int] = Field(default=None, alias="clipID")
    pool_id: Optional[int] = Field(default=None, alias="poolID")
    # 0 (low) to 15 (high); the gateway defaults to 8.
    priority: Optional[int] = None
    history: Optional[bool] = None


class CloneResult(CloneInfo):
    type: str = "CloneResult"
    copy_id: Optional[int] = Field(default=None, alias="copyID")
    copy_created: Optional[bool] = None


class CopyProgress(ClipRef):
    type: str = "CopyProgress"
    total_protons: Optional[int] = None
    protons_left: Optional[int] = None
    # Negative once the copy has completed.
    secs_left: Optional[float] = None
    priority: int = 8
    ticketed: bool = False


class MonitoredPort(BaseModel):
    """Channels a port is expected to own, used for conflict detection only."""
    channels: list[int] = Field(default_factory=list)
