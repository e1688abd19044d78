"""Survey wizard sections and the list edits section views perform.

Section views never change a list in place: each helper builds a new list
and hands it to ``set_field`` as a whole.
"""
import logging
from dataclasses import dataclass, field
from typing import Tuple

logger = logging.getLogger(__name__)

MIN_TRANSPORT_LINKS = 1


@dataclass(frozen=True)
class TableSpec:
    """A repeated group rendered as a table: list name, title, (key, label) columns."""
    name: str
    title: str
    columns: Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class SectionDefinition:
    id: str
    title: str
    fields: Tuple[Tuple[str, str], ...] = ()
    tables: Tuple[TableSpec, ...] = field(default_factory=tuple)


CIRCUIT_COLUMNS = (('circuit', 'Circuit'), ('mcbRating', 'MCB rating'), ('used', 'Used'), ('label', 'Label'))

SURVEY_SECTIONS = (
    SectionDefinition('site-info', 'Site Information', fields=(
        ('siteName', 'Site name'),
        ('region', 'Region'),
        ('date', 'Survey date'),
        ('siteId', 'Site ID'),
        ('siteType', 'Site type'),
        ('address', 'Address'),
        ('gpsCoordinates', 'GPS coordinates'),
        ('buildingName', 'Building name'),
        ('buildingType', 'Building type'),
        ('floorLevel', 'Floor level'),
        ('roomNumber', 'Room number'),
        ('accessRequirements', 'Access requirements'),
        ('securityRequirements', 'Security requirements'),
        ('vehicleType', 'Vehicle type'),
    )),
    SectionDefinition('attendees', 'Site Visit Attendees', tables=(
        TableSpec('attendees', 'Attendees', (
            ('date', 'Date'), ('name', 'Name'), ('company', 'Company'),
            ('department', 'Department'), ('cellphone', 'Cellphone'),
        )),
    )),
    SectionDefinition('site-contacts', 'Site Owner Contacts', tables=(
        TableSpec('siteOwnerContacts', 'Contacts', (
            ('name', 'Name'), ('cellphone', 'Cellphone'), ('email', 'Email'),
        )),
    )),
    SectionDefinition('equipment-room', 'Equipment Room', fields=(
        ('cableAccess', 'Cable access'),
        ('roomLighting', 'Room lighting'),
        ('fireProtection', 'Fire protection'),
        ('coolingMethod', 'Cooling method'),
        ('coolingRating', 'Cooling rating'),
        ('roomTemperature', 'Room temperature'),
        ('roomCondition', 'Room condition'),
    )),
    SectionDefinition('cabinet-planning', 'Cabinet Space Planning', fields=(
        ('numberOfRouters', 'Number of routers'),
        ('cabinetLayoutNotes', 'Cabinet layout notes'),
    )),
    SectionDefinition('transport', 'Transport Platforms', tables=(
        TableSpec('transportLinks', 'Transport links', (
            ('linkNumber', 'Link'), ('linkType', 'Type'),
            ('direction', 'Direction'), ('capacity', 'Capacity'),
        )),
    )),
    SectionDefinition('power', 'DC Power Distribution', fields=(
        ('chargerALoadCurrent', 'Charger A load current'),
        ('chargerBLoadCurrent', 'Charger B load current'),
        ('powerSupplyMethod', 'Power supply method'),
        ('dcCableLength', 'DC cable length'),
        ('chargerLoadDistribution.chargerLabel', 'Charger label'),
        ('chargerLoadDistribution.chargerType', 'Charger type'),
    ), tables=(
        TableSpec('chargerLoadDistribution.chargerA', 'Charger A circuits', CIRCUIT_COLUMNS),
        TableSpec('chargerLoadDistribution.chargerB', 'Charger B circuits', CIRCUIT_COLUMNS),
    )),
    SectionDefinition('photos', 'Equipment Photos'),
    SectionDefinition('requirements', 'Installation Requirements', fields=(
        ('installationRequirements.accessSecurity', 'Access & security'),
        ('installationRequirements.coolingVentilation', 'Cooling & ventilation'),
        ('installationRequirements.flooringType', 'Flooring type'),
        ('installationRequirements.fireProtection', 'Fire protection'),
        ('installationRequirements.roomLighting', 'Room lighting'),
        ('installationRequirements.roofType', 'Roof type'),
        ('installationRequirements.powerCables', 'Power cables'),
        ('generalRemarks', 'General remarks'),
    )),
    SectionDefinition('odf', 'Optical Distribution Frame', tables=(
        TableSpec('odfDetails', 'ODF cabinets', (
            ('cabinetName', 'Cabinet'), ('direction', 'Direction'),
            ('connectionType', 'Connection'), ('numberOfCores', 'Cores'),
        )),
    )),
    SectionDefinition('drawings', 'Room Layout Drawings'),
    SectionDefinition('final-notes', 'Final Notes', fields=(
        ('finalNotes', 'Additional notes & recommendations'),
    )),
    SectionDefinition('outcome', 'Survey Outcome'),
)

SURVEY_SECTION_IDS = tuple(section.id for section in SURVEY_SECTIONS)

INSTALLATION_SECTIONS = (
    SectionDefinition('installation-info', 'Installation Information', fields=(
        ('installationDate', 'Installation date'),
        ('installationType', 'Installation type'),
        ('siteName', 'Site name'),
        ('siteId', 'Site ID'),
        ('siteAddress', 'Site address'),
        ('siteCoordinates', 'Site coordinates'),
        ('customerName', 'Customer'),
        ('customerContactPerson', 'Customer contact'),
    )),
    SectionDefinition('equipment', 'Equipment & Network', fields=(
        ('equipmentDetails', 'Equipment details'),
        ('networkSubnet', 'Network subnet'),
        ('ipRange', 'IP range'),
        ('gateway', 'Gateway'),
        ('dnsServers', 'DNS servers'),
        ('vlanConfiguration', 'VLAN configuration'),
    )),
    SectionDefinition('verification', 'Verification'),
    SectionDefinition('installation-photos', 'Installation Photos'),
    SectionDefinition('sign-off', 'Engineer Sign-off', fields=(
        ('challengesFaced', 'Challenges faced'),
        ('resolutionDetails', 'Resolution details'),
        ('additionalNotes', 'Additional notes'),
        ('engineerName', 'Engineer'),
        ('engineerContact', 'Engineer contact'),
    )),
)

INSTALLATION_SECTION_IDS = tuple(section.id for section in INSTALLATION_SECTIONS)

# field name -> caption category
PHOTO_FIELDS = (
    ('buildingPhoto', 'Building'),
    ('cabinetLocationPhoto', 'Cabinet location'),
    ('equipmentRoomPhotos', 'Equipment room'),
    ('cabinetLocationPhotos', 'Cabinet location'),
    ('dcPowerDistributionPhotos', 'DC power distribution'),
    ('transportEquipmentPhotos', 'Transport equipment'),
    ('odfPhotos', 'ODF'),
    ('accessEquipmentPhotos', 'Access equipment'),
    ('cableRoutingPhotos', 'Cable routing'),
    ('ceilingHvacPhotos', 'Ceiling & HVAC'),
)

DRAWING_FIELDS = (
    ('roomLayoutDrawing', 'Room layout'),
    ('additionalDrawings', 'Additional drawing'),
)

APPROVAL_ROLES = (
    ('oemContractor', 'OEM Contractor'),
    ('oemEngineer', 'OEM Engineer'),
    ('eskomRepresentative', 'Eskom Representative'),
)


CHARGER_CIRCUITS = 26
ODF_CORES = 48


def blank_approval():
    return {'name': '', 'signature': '', 'date': '', 'accepted': False, 'comments': ''}


def blank_attendee():
    return {'date': '', 'name': '', 'company': '', 'department': '', 'cellphone': ''}


def blank_contact():
    return {'name': '', 'cellphone': '', 'email': ''}


def blank_transport_link(number):
    return {'linkNumber': str(number), 'linkType': '', 'direction': '', 'capacity': ''}


def blank_circuits():
    return [
        {'circuit': chr(ord('A') + i), 'mcbRating': '', 'used': False, 'label': ''}
        for i in range(CHARGER_CIRCUITS)
    ]


def blank_odf_cabinet():
    return {
        'cabinetName': '',
        'direction': '',
        'connectionType': '',
        'numberOfCores': '',
        'cores': [{'number': i + 1, 'used': False} for i in range(ODF_CORES)],
    }


def section_by_id(section_id, sections=SURVEY_SECTIONS):
    for section in sections:
        if section.id == section_id:
            return section
    raise KeyError(section_id)


def replace_item(items, index, **changes):
    """Return a copy of ``items`` whose record at ``index`` has ``changes`` applied."""
    if not 0 <= index < len(items):
        raise IndexError(f"Index {index} out of range (length {len(items)})")
    new_items = list(items)
    new_items[index] = {**items[index], **changes}
    return new_items


def without_item(items, index):
    if not 0 <= index < len(items):
        raise IndexError(f"Index {index} out of range (length {len(items)})")
    return items[:index] + items[index + 1:]


def renumber_links(links):
    """Re-derive ``linkNumber`` from position, keeping relative order."""
    return [{**link, 'linkNumber': str(position)} for position, link in enumerate(links, start=1)]


def update_list_item(machine, list_name, index, **changes):
    """Change fields of one record in a repeated group."""
    return machine.set_field(list_name, replace_item(machine.get_field(list_name, []), index, **changes))


def add_list_item(machine, list_name, item):
    return machine.set_field(list_name, list(machine.get_field(list_name, [])) + [item])


def remove_list_item(machine, list_name, index):
    return machine.set_field(list_name, without_item(machine.get_field(list_name, []), index))


def add_attendee(machine):
    return add_list_item(machine, 'attendees', blank_attendee())


def add_site_contact(machine):
    return add_list_item(machine, 'siteOwnerContacts', blank_contact())


def add_transport_link(machine):
    links = machine.get_field('transportLinks', [])
    return machine.set_field('transportLinks', list(links) + [blank_transport_link(len(links) + 1)])


def remove_transport_link(machine, index):
    """Remove one link and renumber the rest; the last link cannot be removed."""
    links = machine.get_field('transportLinks', [])
    if len(links) <= MIN_TRANSPORT_LINKS:
        logger.info("Refusing to remove the last transport link")
        return machine.state
    return machine.set_field('transportLinks', renumber_links(without_item(links, index)))


def add_odf_cabinet(machine):
    return add_list_item(machine, 'odfDetails', blank_odf_cabinet())


def toggle_odf_core(machine, cabinet_index, core_index):
    cabinets = machine.get_field('odfDetails', [])
    cores = replace_item(cabinets[cabinet_index]['cores'], core_index,
                         used=not cabinets[cabinet_index]['cores'][core_index]['used'])
    return update_list_item(machine, 'odfDetails', cabinet_index, cores=cores)


def update_circuit(machine, charger, index, **changes):
    """Edit one circuit row of ``chargerA`` or ``chargerB``."""
    if charger not in ('chargerA', 'chargerB'):
        raise ValueError(f"Unknown charger: {charger!r}")
    circuits = machine.get_field(f'chargerLoadDistribution.{charger}', [])
    return machine.set_field(f'chargerLoadDistribution.{charger}', replace_item(circuits, index, **changes))


def add_drawing(machine, data_uri=''):
    return add_list_item(machine, 'additionalDrawings', data_uri)


def add_photo(machine, field_name, data_uri):
    """Append a photo to a collection, or set it when the field holds a single image."""
    current = machine.get_field(field_name)
    if isinstance(current, list):
        return machine.set_field(field_name, current + [data_uri])
    return machine.set_field(field_name, data_uri)


def remove_photo(machine, field_name, index=None):
    current = machine.get_field(field_name)
    if isinstance(current, list):
        return machine.set_field(field_name, without_item(current, index))
    return machine.set_field(field_name, '')
