"""Form state and the survey wizard state machine.

A form state is a plain nested ``dict``. Every edit goes through one of
three update commands, each touching exactly one addressing level:

- ``SetTopLevel("siteName")``            <- ``"siteName"``
- ``SetNested("oemContractor", "name")`` <- ``"oemContractor.name"``
- ``SetArrayIndex("additionalDrawings", 2)`` <- ``"additionalDrawings[2]"``

Updates never mutate the state they are given: only the touched containers
are copied, every other branch is shared with the previous state.
"""
import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from .sections import (
    SURVEY_SECTION_IDS, blank_approval, blank_attendee, blank_circuits, blank_contact,
    blank_odf_cabinet, blank_transport_link,
)

logger = logging.getLogger(__name__)

TOP_LEVEL_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
NESTED_PATTERN = re.compile(r'^(?P<parent>[A-Za-z_][A-Za-z0-9_]*)\.(?P<child>[A-Za-z_][A-Za-z0-9_]*)$')
INDEXED_PATTERN = re.compile(r'^(?P<name>[A-Za-z_][A-Za-z0-9_]*)\[(?P<index>\d+)\]$')


class InvalidFieldPath(ValueError):
    """Raised when a field path or command does not fit the form state."""
    pass


@dataclass(frozen=True)
class SetTopLevel:
    key: str


@dataclass(frozen=True)
class SetNested:
    parent: str
    child: str


@dataclass(frozen=True)
class SetArrayIndex:
    name: str
    index: int


FieldCommand = Union[SetTopLevel, SetNested, SetArrayIndex]


def parse_path(path: str) -> FieldCommand:
    """Parse a string field path into an update command.

    Raises:
        InvalidFieldPath: If the path matches none of the three shapes
    """
    if not isinstance(path, str):
        raise InvalidFieldPath(f"Field path must be a string, got {type(path).__name__}")
    if TOP_LEVEL_PATTERN.match(path):
        return SetTopLevel(path)
    match = NESTED_PATTERN.match(path)
    if match:
        return SetNested(match.group('parent'), match.group('child'))
    match = INDEXED_PATTERN.match(path)
    if match:
        return SetArrayIndex(match.group('name'), int(match.group('index')))
    raise InvalidFieldPath(f"Unrecognized field path: {path!r}")


def as_command(path_or_command) -> FieldCommand:
    if isinstance(path_or_command, (SetTopLevel, SetNested, SetArrayIndex)):
        return path_or_command
    return parse_path(path_or_command)


def apply_command(state: Dict[str, Any], command: FieldCommand, value: Any) -> Dict[str, Any]:
    """Return a new state with ``value`` written at ``command``.

    Raises:
        InvalidFieldPath: If a nested update targets a non-dict or an indexed
            update targets a non-list or an out-of-range index
    """
    if isinstance(command, SetTopLevel):
        new_state = dict(state)
        new_state[command.key] = value
        return new_state

    if isinstance(command, SetNested):
        parent = state.get(command.parent)
        if not isinstance(parent, dict):
            raise InvalidFieldPath(f"{command.parent!r} is not an object in the form state")
        new_parent = dict(parent)
        new_parent[command.child] = value
        new_state = dict(state)
        new_state[command.parent] = new_parent
        return new_state

    if isinstance(command, SetArrayIndex):
        items = state.get(command.name)
        if not isinstance(items, list):
            raise InvalidFieldPath(f"{command.name!r} is not a list in the form state")
        if not 0 <= command.index < len(items):
            raise InvalidFieldPath(f"Index {command.index} out of range for {command.name!r} (length {len(items)})")
        new_items = list(items)
        new_items[command.index] = value
        new_state = dict(state)
        new_state[command.name] = new_items
        return new_state

    raise InvalidFieldPath(f"Unsupported update command: {command!r}")


def get_field(state: Dict[str, Any], path_or_command, default=None):
    """Read a value using the same addressing modes as ``apply_command``."""
    command = as_command(path_or_command)
    if isinstance(command, SetTopLevel):
        return state.get(command.key, default)
    if isinstance(command, SetNested):
        parent = state.get(command.parent)
        if isinstance(parent, dict):
            return parent.get(command.child, default)
        return default
    items = state.get(command.name)
    if isinstance(items, list) and 0 <= command.index < len(items):
        return items[command.index]
    return default


def initial_survey_state(today: Optional[date] = None) -> Dict[str, Any]:
    """Default state for a new site survey."""
    today = today or date.today()
    return {
        # Site identification
        'siteName': '',
        'region': '',
        'date': today.isoformat(),
        'siteId': '',
        'siteType': '',
        'address': '',
        'gpsCoordinates': '',
        'buildingPhoto': '',

        'attendees': [blank_attendee()],

        # Survey outcome, one entry per approval role
        'oemContractor': blank_approval(),
        'oemEngineer': blank_approval(),
        'eskomRepresentative': blank_approval(),

        # Equipment location
        'buildingName': '',
        'buildingType': '',
        'floorLevel': '',
        'roomNumber': '',

        # Access procedure
        'accessRequirements': '',
        'securityRequirements': '',
        'vehicleType': '',

        'siteOwnerContacts': [blank_contact()],

        # Equipment room
        'cableAccess': '',
        'roomLighting': '',
        'fireProtection': '',
        'coolingMethod': '',
        'coolingRating': '',
        'roomTemperature': '',
        'roomCondition': '',

        # Cabinet planning
        'numberOfRouters': '',
        'cabinetLocationPhoto': '',
        'roomLayoutDrawing': '',
        'additionalDrawings': [],

        'transportLinks': [blank_transport_link(i) for i in range(1, 5)],

        # Power
        'chargerALoadCurrent': '',
        'chargerBLoadCurrent': '',
        'powerSupplyMethod': '',
        'dcCableLength': '',
        'chargerLoadDistribution': {
            'chargerLabel': '',
            'chargerType': 'single',
            'chargerA': blank_circuits(),
            'chargerB': blank_circuits(),
        },

        # Photo collections
        'equipmentRoomPhotos': [],
        'cabinetLocationPhotos': [],
        'dcPowerDistributionPhotos': [],
        'transportEquipmentPhotos': [],
        'odfPhotos': [],
        'accessEquipmentPhotos': [],
        'cableRoutingPhotos': [],
        'ceilingHvacPhotos': [],

        'installationRequirements': {
            'accessSecurity': '',
            'coolingVentilation': '',
            'flooringType': '',
            'fireProtection': '',
            'roomLighting': '',
            'roofType': '',
            'powerCables': '',
        },

        'odfDetails': [blank_odf_cabinet()],

        'generalRemarks': '',
        'cabinetLayoutNotes': '',
        'finalNotes': '',
    }


def initial_installation_state(today: Optional[date] = None) -> Dict[str, Any]:
    """Default state for a new installation record."""
    today = today or date.today()
    return {
        'installationDate': today.isoformat(),
        'installationType': 'new',
        'siteName': '',
        'siteId': '',
        'siteAddress': '',
        'siteCoordinates': '',
        'customerName': '',
        'customerContactPerson': '',
        'installedEquipment': {
            'switches': False,
            'routers': False,
            'accessPoints': False,
            'servers': False,
            'storage': False,
            'cabling': False,
            'ups': False,
            'other': False,
        },
        'equipmentDetails': '',
        'networkSubnet': '',
        'ipRange': '',
        'gateway': '',
        'dnsServers': '',
        'vlanConfiguration': '',
        'verification': {
            'rackMounting': False,
            'cableLaying': False,
            'powerConfiguration': False,
            'networkConfiguration': False,
            'testing': False,
            'documentation': False,
        },
        'installationPhotos': {
            'rackSetup': '',
            'cabling': '',
            'equipment': '',
            'testing': '',
        },
        'challengesFaced': '',
        'resolutionDetails': '',
        'additionalNotes': '',
        'engineerName': '',
        'engineerContact': '',
        'engineerSignature': '',
    }


class SurveyFormStateMachine:
    """Holds one form state and the active wizard section.

    ``set_field`` is the only way to change the state. Listeners registered
    with ``on_change`` receive the new state after every successful update;
    listeners registered with ``on_navigate`` receive the section id after
    every section change (the view scrolls to top there).
    """

    def __init__(self, initial_state: Dict[str, Any], sections: Sequence[str] = SURVEY_SECTION_IDS):
        if not sections:
            raise ValueError("A wizard needs at least one section")
        self.logger = logging.getLogger(self.__class__.__name__)
        self._initial_state = initial_state
        self._state = initial_state
        self.sections = tuple(sections)
        self._section_index = 0
        self._change_listeners: List[Callable[[Dict[str, Any]], None]] = []
        self._navigate_listeners: List[Callable[[str], None]] = []

    @property
    def state(self) -> Dict[str, Any]:
        return self._state

    @property
    def active_section(self) -> str:
        return self.sections[self._section_index]

    @property
    def is_first_section(self) -> bool:
        return self._section_index == 0

    @property
    def is_last_section(self) -> bool:
        return self._section_index == len(self.sections) - 1

    def on_change(self, callback):
        self._change_listeners.append(callback)
        return callback

    def on_navigate(self, callback):
        self._navigate_listeners.append(callback)
        return callback

    def set_field(self, path_or_command, value) -> Dict[str, Any]:
        """Write ``value`` at a field path or command and return the new state.

        Raises:
            InvalidFieldPath: The state is left unchanged
        """
        command = as_command(path_or_command)
        try:
            new_state = apply_command(self._state, command, value)
        except InvalidFieldPath as e:
            self.logger.warning(f"Rejected field update {command}: {e}")
            raise
        self._replace(new_state)
        return new_state

    def get_field(self, path_or_command, default=None):
        return get_field(self._state, path_or_command, default)

    def load(self, state: Dict[str, Any]):
        """Replace the whole state, e.g. when a draft is restored."""
        self._replace(state)

    def reset(self):
        """Return to the initial state and the first section."""
        self._replace(self._initial_state)
        self.go_to(self.sections[0])

    def location_update(self, latitude: float, longitude: float, address: Optional[str] = None):
        """Record a GPS fix as ``"lat, lng"`` and, when known, the resolved address."""
        self.set_field('gpsCoordinates', f"{latitude:.6f}, {longitude:.6f}")
        if address:
            self.set_field('address', address)

    def next_section(self) -> str:
        if not self.is_last_section:
            self._move_to(self._section_index + 1)
        return self.active_section

    def previous_section(self) -> str:
        if not self.is_first_section:
            self._move_to(self._section_index - 1)
        return self.active_section

    def go_to(self, section_id: str) -> str:
        try:
            index = self.sections.index(section_id)
        except ValueError:
            raise ValueError(f"Unknown section: {section_id!r}")
        self._move_to(index)
        return self.active_section

    def _move_to(self, index):
        self._section_index = index
        for listener in list(self._navigate_listeners):
            listener(self.active_section)

    def _replace(self, new_state):
        self._state = new_state
        for listener in list(self._change_listeners):
            listener(new_state)
