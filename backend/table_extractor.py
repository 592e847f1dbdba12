"""
Process table extraction
Turns parsed BPMN elements and lanes into numbered process-step rows
"""

from typing import List, Dict

DEFAULT_PROCESS_NAME = 'Process Name'
DEFAULT_ROLE = 'Actor'


def sort_lanes_by_y(lanes: List[Dict], elements: List[Dict]) -> List[Dict]:
    """Order lanes top to bottom using the y of their diagram shape (0 when the lane has no shape)"""
    lane_y = {}
    for element in elements:
        # First element with a given id wins
        lane_y.setdefault(element['id'], element['y'])
    return sorted(lanes, key=lambda lane: lane_y.get(lane['id'], 0))


def _lane_members(lane: Dict) -> List[str]:
    members = lane.get('elements') or []
    if isinstance(members, str):
        return [members]
    return list(members)


def get_process_name(elements: List[Dict], lanes: List[Dict]) -> str:
    """Participant name, else first lane name, else a placeholder"""
    for element in elements:
        if element['type'] == 'participant' and element.get('name'):
            return element['name']

    if lanes and lanes[0].get('name'):
        return lanes[0]['name']

    return DEFAULT_PROCESS_NAME


def extract_process_table_data(elements: List[Dict], lanes: List[Dict]) -> List[Dict]:
    """
    Build one row per task that sits in a lane.

    Step sequence is "<lane position>.<task position>", lanes counted top to
    bottom and tasks in diagram order. Tasks outside every lane are left out.
    """
    table_data = []
    process_name = get_process_name(elements, lanes)

    for lane_idx, lane in enumerate(sort_lanes_by_y(lanes, elements)):
        members = _lane_members(lane)
        lane_tasks = [e for e in elements if e['type'] == 'task' and e['id'] in members]

        lane_name = lane.get('name')
        role = lane_name if isinstance(lane_name, str) and lane_name.strip() else DEFAULT_ROLE

        for task_idx, task in enumerate(lane_tasks):
            table_data.append({
                'step_seq': f"{lane_idx + 1}.{task_idx + 1}",
                'process_name': process_name,
                'task': task.get('name') or '',
                'procedure': task.get('name') or '',
                'tools_references': '',
                'role': role
            })

    return table_data
