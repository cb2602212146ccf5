from aethel.domain.entities.aethel_object import AethelObject, new_id, utc_now
from aethel.domain.entities.object_types import (
    ObjectType,
    BUILTIN_OBJECT_TYPES,
    DEFAULT_OBJECT_COLOR,
    FOLDER_TYPE_ID,
    get_builtin_type,
)
from aethel.domain.entities.placement import (
    TimelinePlacement,
    PlacementType,
    MutationDisplay,
    MutationPayload,
    AttributeChange,
)
from aethel.domain.entities.track import TimelineTrack
from aethel.domain.entities.marker import TimelineMarker
from aethel.domain.entities.milestone import Milestone, MilestoneExport
