from table_extractor import extract_process_table_data, get_process_name, sort_lanes_by_y


def element(element_id, element_type, name=None, y=0.0):
    return {'id': element_id, 'name': name, 'type': element_type, 'x': 0.0, 'y': y, 'width': 10.0, 'height': 10.0}


def lane(lane_id, name, members):
    return {'id': lane_id, 'name': name, 'elements': members}


def test_single_lane_single_task():
    elements = [element('Lane_1', 'lane', y=0), element('Activity_1', 'task', 'Review Request', y=50)]
    rows = extract_process_table_data(elements, [lane('Lane_1', 'Actor', ['Activity_1'])])

    assert rows == [{
        'step_seq': '1.1',
        'process_name': 'Actor',
        'task': 'Review Request',
        'procedure': 'Review Request',
        'tools_references': '',
        'role': 'Actor'
    }]


def test_lanes_are_numbered_top_to_bottom():
    elements = [
        element('Lane_Low', 'lane', y=400),
        element('Lane_High', 'lane', y=100),
        element('Task_A', 'task', 'A'),
        element('Task_B', 'task', 'B'),
        element('Task_C', 'task', 'C'),
    ]
    lanes = [
        lane('Lane_Low', 'Finance', ['Task_C']),
        lane('Lane_High', 'Sales', ['Task_A', 'Task_B']),
    ]
    rows = extract_process_table_data(elements, lanes)

    assert [(r['step_seq'], r['task'], r['role']) for r in rows] == [
        ('1.1', 'A', 'Sales'),
        ('1.2', 'B', 'Sales'),
        ('2.1', 'C', 'Finance'),
    ]


def test_one_row_per_task_with_unique_labels():
    elements = [element(f'Lane_{i}', 'lane', y=i * 100) for i in range(3)]
    elements += [element(f'Task_{i}', 'task', f'Task {i}') for i in range(7)]
    lanes = [
        lane('Lane_0', 'L0', ['Task_0', 'Task_1']),
        lane('Lane_1', 'L1', ['Task_2', 'Task_3', 'Task_4']),
        lane('Lane_2', 'L2', ['Task_5', 'Task_6']),
    ]
    rows = extract_process_table_data(elements, lanes)

    assert len(rows) == 7
    assert len({r['step_seq'] for r in rows}) == 7


def test_lane_without_shape_sorts_as_zero():
    elements = [element('Lane_Drawn', 'lane', y=50)]
    lanes = [lane('Lane_Drawn', 'Drawn', []), lane('Lane_Missing', 'Missing', [])]
    assert [l['name'] for l in sort_lanes_by_y(lanes, elements)] == ['Missing', 'Drawn']


def test_tasks_outside_lanes_and_non_tasks_are_skipped():
    elements = [
        element('Task_In', 'task', 'Inside'),
        element('Task_Out', 'task', 'Outside'),
        element('StartEvent_1', 'startEvent', 'Start'),
    ]
    rows = extract_process_table_data(elements, [lane('Lane_1', 'Team', ['Task_In', 'StartEvent_1'])])
    assert [r['task'] for r in rows] == ['Inside']


def test_member_ids_given_as_string():
    elements = [element('Task_1', 'task', 'Only')]
    rows = extract_process_table_data(elements, [lane('Lane_1', 'Team', 'Task_1')])
    assert rows[0]['step_seq'] == '1.1'


def test_blank_lane_name_uses_default_role():
    elements = [element('Task_1', 'task', 'Work')]
    rows = extract_process_table_data(elements, [lane('Lane_1', '   ', ['Task_1'])])
    assert rows[0]['role'] == 'Actor'


def test_process_name_prefers_participant():
    elements = [element('Participant_1', 'participant', 'Onboarding')]
    assert get_process_name(elements, [lane('Lane_1', 'HR', [])]) == 'Onboarding'


def test_process_name_falls_back_to_first_lane_then_placeholder():
    assert get_process_name([], [lane('Lane_1', 'HR', []), lane('Lane_2', 'IT', [])]) == 'HR'
    assert get_process_name([element('Participant_1', 'participant', None)], []) == 'Process Name'
