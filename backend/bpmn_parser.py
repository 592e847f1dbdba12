"""
BPMN Diagram Parser
Reads BPMN XML into flat element, flow and lane records for LaTeX generation
"""

from lxml import etree
from typing import List, Dict, Optional, Union

from log_config import setup_logger

logger = setup_logger(__name__)

# Task-like declarations whose names are shown in the process table
TASK_TAGS = [
    'task', 'userTask', 'serviceTask', 'manualTask', 'scriptTask',
    'callActivity', 'sendTask', 'receiveTask', 'businessRuleTask'
]

# Fallback display names by declaration kind
DEFAULT_NAMES = {
    'participant': 'Participant',
    'startEvent': 'Start',
    'task': 'Task',
    'endEvent': 'End',
}


def get_element_type(element_id: str) -> str:
    """Classify a diagram element by the naming convention of its id"""
    if 'StartEvent' in element_id:
        return 'startEvent'
    if 'EndEvent' in element_id:
        return 'endEvent'
    if 'Task' in element_id or 'Activity' in element_id:
        return 'task'
    if 'Gateway' in element_id:
        return 'gateway'
    if 'Participant' in element_id:
        return 'participant'
    if 'Lane' in element_id:
        return 'lane'
    return 'unknown'


def _to_float(value: Optional[str]) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class BPMNParser:
    """
    BPMN parser producing the records used by the table extractor:
    - elements: one per diagram shape with bounds, plus one per collaboration participant
    - flows: one per diagram edge, endpoints resolved from the process sequence flows
    - lanes: lanes from collaboration participants followed by lanes from the processes
    """

    BPMN_NS = {'bpmn': 'http://www.omg.org/spec/BPMN/20100524/MODEL'}
    BPMNDI_NS = {
        'bpmndi': 'http://www.omg.org/spec/BPMN/20100524/DI',
        'dc': 'http://www.omg.org/spec/DD/20100524/DC',
        'di': 'http://www.omg.org/spec/DD/20100524/DI'
    }

    def __init__(self, xml_content: Union[str, bytes]):
        if isinstance(xml_content, str):
            # lxml refuses str input that carries an encoding declaration
            xml_content = xml_content.encode('utf-8')
        xml_parser = etree.XMLParser(resolve_entities=False, no_network=True)
        self.root = etree.fromstring(xml_content, parser=xml_parser)

        self.elements: List[Dict] = []
        self.flows: List[Dict] = []
        self.lanes: List[Dict] = []

        # id -> display name, id -> (sourceRef, targetRef)
        self.names: Dict[str, str] = {}
        self.sequence_flows: Dict[str, Dict] = {}

        self._index_declarations()
        self._parse_shapes()
        self._parse_edges()
        self._parse_participants()
        self._parse_lanes()

    def _participants(self) -> list:
        return self.root.xpath('./bpmn:collaboration/bpmn:participant', namespaces=self.BPMN_NS)

    def _processes(self) -> list:
        return self.root.xpath('./bpmn:process', namespaces=self.BPMN_NS)

    def _index_declarations(self):
        """Build id lookups for names and sequence flows once per diagram"""
        for participant in self._participants():
            self.names.setdefault(participant.get('id'), participant.get('name') or DEFAULT_NAMES['participant'])

        for process in self._processes():
            for event in process.xpath('./bpmn:startEvent', namespaces=self.BPMN_NS):
                self.names.setdefault(event.get('id'), event.get('name') or DEFAULT_NAMES['startEvent'])

            task_query = ' | '.join(f'./bpmn:{tag}' for tag in TASK_TAGS)
            for task in process.xpath(task_query, namespaces=self.BPMN_NS):
                self.names.setdefault(task.get('id'), task.get('name') or DEFAULT_NAMES['task'])

            for event in process.xpath('./bpmn:endEvent', namespaces=self.BPMN_NS):
                self.names.setdefault(event.get('id'), event.get('name') or DEFAULT_NAMES['endEvent'])

            for flow in process.xpath('./bpmn:sequenceFlow', namespaces=self.BPMN_NS):
                self.sequence_flows.setdefault(flow.get('id'), {
                    'source': flow.get('sourceRef') or '',
                    'target': flow.get('targetRef') or ''
                })

    def get_element_name(self, element_id: str) -> str:
        return self.names.get(element_id, 'Element')

    def _parse_shapes(self):
        """Every BPMNShape with bounds becomes an element"""
        for shape in self.root.xpath('.//bpmndi:BPMNShape', namespaces=self.BPMNDI_NS):
            bounds = shape.find('{http://www.omg.org/spec/DD/20100524/DC}Bounds')
            if bounds is None:
                continue
            element_id = shape.get('bpmnElement', '')
            self.elements.append({
                'id': element_id,
                'name': self.get_element_name(element_id),
                'type': get_element_type(element_id),
                'x': _to_float(bounds.get('x')),
                'y': _to_float(bounds.get('y')),
                'width': _to_float(bounds.get('width')),
                'height': _to_float(bounds.get('height'))
            })

    def _parse_edges(self):
        """Every BPMNEdge becomes a flow; unknown flow ids get empty endpoints"""
        for edge in self.root.xpath('.//bpmndi:BPMNEdge', namespaces=self.BPMNDI_NS):
            flow_id = edge.get('bpmnElement', '')
            declared = self.sequence_flows.get(flow_id, {})
            waypoints = [
                {'x': _to_float(wp.get('x')), 'y': _to_float(wp.get('y'))}
                for wp in edge.xpath('./di:waypoint', namespaces=self.BPMNDI_NS)
            ]
            self.flows.append({
                'id': flow_id,
                'source_ref': declared.get('source', ''),
                'target_ref': declared.get('target', ''),
                'waypoints': waypoints
            })

    def _parse_participants(self):
        """Collaboration participants are appended as zero-sized participant elements"""
        for participant in self._participants():
            self.elements.append({
                'id': participant.get('id'),
                'name': participant.get('name'),
                'type': 'participant',
                'x': 0.0,
                'y': 0.0,
                'width': 0.0,
                'height': 0.0
            })

    def _lane_record(self, lane) -> Dict:
        refs = [ref.text.strip() for ref in lane.xpath('./bpmn:flowNodeRef', namespaces=self.BPMN_NS) if ref.text]
        return {
            'id': lane.get('id'),
            'name': lane.get('name'),
            'elements': refs
        }

    def _parse_lanes(self):
        # Lanes nested in collaboration participants come first, then process lanes.
        # A lane declared in both places is kept twice.
        for participant in self._participants():
            for lane in participant.xpath('./bpmn:laneSet/bpmn:lane', namespaces=self.BPMN_NS):
                self.lanes.append(self._lane_record(lane))

        for process in self._processes():
            for lane in process.xpath('./bpmn:laneSet/bpmn:lane', namespaces=self.BPMN_NS):
                self.lanes.append(self._lane_record(lane))

    def get_process_inputs(self) -> str:
        """Start events as numbered process inputs, falling back to the outgoing flow name"""
        inputs = []
        for process in self._processes():
            for event in process.xpath('./bpmn:startEvent', namespaces=self.BPMN_NS):
                name = (event.get('name') or '').strip()
                if not name:
                    for flow_ref in event.xpath('./bpmn:outgoing', namespaces=self.BPMN_NS):
                        flow = process.xpath('./bpmn:sequenceFlow[@id=$fid]', namespaces=self.BPMN_NS, fid=(flow_ref.text or '').strip())
                        if flow and flow[0].get('name'):
                            name = flow[0].get('name').strip()
                            break
                if name:
                    inputs.append(name)
        return '\n'.join(f"{i}. {name}" for i, name in enumerate(inputs, start=1))

    def get_process_outputs(self) -> str:
        """Named end events as numbered process outputs"""
        outputs = []
        for process in self._processes():
            for event in process.xpath('./bpmn:endEvent[@name]', namespaces=self.BPMN_NS):
                name = event.get('name', '').strip()
                if name:
                    outputs.append(name)
        return '\n'.join(f"{i}. {name}" for i, name in enumerate(outputs, start=1))

    def extract_bpmn_metadata(self) -> dict:
        """
        Extract metadata from BPMN elements for form auto-population.

        Extracts:
        - process_name: from <bpmn:participant name="...">
        - description: from <bpmn:participant>/<bpmn:documentation>
        - triggers: names of the start events
        - lane_names: names of every lane

        Only includes keys where data was found in the BPMN.
        """
        metadata = {}

        participant = self.root.xpath('./bpmn:collaboration/bpmn:participant[@name]', namespaces=self.BPMN_NS)
        if participant:
            name = participant[0].get('name', '').strip()
            if name:
                metadata['process_name'] = name

        participant_doc = self.root.xpath(
            './bpmn:collaboration/bpmn:participant/bpmn:documentation',
            namespaces=self.BPMN_NS
        )
        if participant_doc and participant_doc[0].text:
            metadata['description'] = participant_doc[0].text.strip()

        triggers = []
        for event in self.root.xpath('./bpmn:process/bpmn:startEvent[@name]', namespaces=self.BPMN_NS):
            name = event.get('name', '').strip()
            if name:
                triggers.append(name)
        if triggers:
            metadata['triggers'] = ', '.join(triggers)

        lane_names = []
        for lane in self.lanes:
            name = (lane['name'] or '').strip()
            if name and name not in lane_names:
                lane_names.append(name)
        if lane_names:
            metadata['lane_names'] = lane_names

        return metadata


def parse_bpmn(xml_content: Union[str, bytes]) -> Dict[str, List[Dict]]:
    """Parse BPMN XML into {'elements', 'flows', 'lanes'}. Parse errors propagate."""
    parser = BPMNParser(xml_content)
    logger.debug(
        "Parsed BPMN: %d elements, %d flows, %d lanes",
        len(parser.elements), len(parser.flows), len(parser.lanes)
    )
    return {
        'elements': parser.elements,
        'flows': parser.flows,
        'lanes': parser.lanes
    }


def extract_metadata_from_bpmn(xml_content: Union[str, bytes]) -> dict:
    """
    Extract metadata from BPMN file for form auto-population.
    Does NOT generate LaTeX - just extracts metadata fields.
    """
    try:
        parser = BPMNParser(xml_content)
        metadata = parser.extract_bpmn_metadata()

        # Also include auto-populated inputs/outputs
        metadata['inputs'] = parser.get_process_inputs()
        metadata['outputs'] = parser.get_process_outputs()

        return metadata
    except Exception:
        logger.exception("BPMN metadata extraction failed")
        return {}
