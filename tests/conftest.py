import os
import tempfile

import pytest

# Keep log files out of the user's config directory
os.environ.setdefault('LATEX_GENERATOR_DATA_DIR', tempfile.mkdtemp(prefix='latex_generator_'))

from app import create_app  # noqa: E402

NAMESPACES = '''xmlns:bpmn="http://www.omg.org/spec/BPMN/20100524/MODEL"
    xmlns:bpmndi="http://www.omg.org/spec/BPMN/20100524/DI"
    xmlns:dc="http://www.omg.org/spec/DD/20100524/DC"
    xmlns:di="http://www.omg.org/spec/DD/20100524/DI"'''


@pytest.fixture
def purchase_bpmn():
    """Two lanes declared bottom lane first; Clerk is drawn above Manager"""
    return f'''<?xml version="1.0" encoding="UTF-8"?>
<bpmn:definitions {NAMESPACES} id="Definitions_1">
  <bpmn:collaboration id="Collaboration_1">
    <bpmn:participant id="Participant_1" name="Purchase Approval" processRef="Process_1">
      <bpmn:documentation>Approve purchase requests</bpmn:documentation>
    </bpmn:participant>
  </bpmn:collaboration>
  <bpmn:process id="Process_1" isExecutable="false">
    <bpmn:laneSet id="LaneSet_1">
      <bpmn:lane id="Lane_Manager" name="Manager">
        <bpmn:flowNodeRef>Activity_Approve</bpmn:flowNodeRef>
        <bpmn:flowNodeRef>EndEvent_1</bpmn:flowNodeRef>
      </bpmn:lane>
      <bpmn:lane id="Lane_Clerk" name="Clerk">
        <bpmn:flowNodeRef>StartEvent_1</bpmn:flowNodeRef>
        <bpmn:flowNodeRef>Activity_Submit</bpmn:flowNodeRef>
        <bpmn:flowNodeRef>Activity_Check</bpmn:flowNodeRef>
      </bpmn:lane>
    </bpmn:laneSet>
    <bpmn:startEvent id="StartEvent_1" name="Request received">
      <bpmn:outgoing>Flow_1</bpmn:outgoing>
    </bpmn:startEvent>
    <bpmn:task id="Activity_Submit" name="Submit Request" />
    <bpmn:task id="Activity_Check" name="Check Budget" />
    <bpmn:userTask id="Activity_Approve" name="Approve Request" />
    <bpmn:endEvent id="EndEvent_1" name="Request approved" />
    <bpmn:sequenceFlow id="Flow_1" sourceRef="StartEvent_1" targetRef="Activity_Submit" />
    <bpmn:sequenceFlow id="Flow_2" sourceRef="Activity_Submit" targetRef="Activity_Check" />
    <bpmn:sequenceFlow id="Flow_3" sourceRef="Activity_Check" targetRef="Activity_Approve" />
    <bpmn:sequenceFlow id="Flow_4" sourceRef="Activity_Approve" targetRef="EndEvent_1" />
  </bpmn:process>
  <bpmndi:BPMNDiagram id="BPMNDiagram_1">
    <bpmndi:BPMNPlane id="BPMNPlane_1" bpmnElement="Collaboration_1">
      <bpmndi:BPMNShape id="Participant_1_di" bpmnElement="Participant_1" isHorizontal="true">
        <dc:Bounds x="100" y="50" width="800" height="400" />
      </bpmndi:BPMNShape>
      <bpmndi:BPMNShape id="Lane_Manager_di" bpmnElement="Lane_Manager" isHorizontal="true">
        <dc:Bounds x="130" y="250" width="770" height="200" />
      </bpmndi:BPMNShape>
      <bpmndi:BPMNShape id="Lane_Clerk_di" bpmnElement="Lane_Clerk" isHorizontal="true">
        <dc:Bounds x="130" y="50" width="770" height="200" />
      </bpmndi:BPMNShape>
      <bpmndi:BPMNShape id="StartEvent_1_di" bpmnElement="StartEvent_1">
        <dc:Bounds x="180" y="132" width="36" height="36" />
      </bpmndi:BPMNShape>
      <bpmndi:BPMNShape id="Activity_Submit_di" bpmnElement="Activity_Submit">
        <dc:Bounds x="250" y="110" width="100" height="80" />
      </bpmndi:BPMNShape>
      <bpmndi:BPMNShape id="Activity_Check_di" bpmnElement="Activity_Check">
        <dc:Bounds x="400" y="110" width="100" height="80" />
      </bpmndi:BPMNShape>
      <bpmndi:BPMNShape id="Activity_Approve_di" bpmnElement="Activity_Approve">
        <dc:Bounds x="550" y="310" width="100" height="80" />
      </bpmndi:BPMNShape>
      <bpmndi:BPMNShape id="EndEvent_1_di" bpmnElement="EndEvent_1">
        <dc:Bounds x="700" y="332" width="36" height="36" />
      </bpmndi:BPMNShape>
      <bpmndi:BPMNEdge id="Flow_1_di" bpmnElement="Flow_1">
        <di:waypoint x="216" y="150" />
        <di:waypoint x="250" y="150" />
      </bpmndi:BPMNEdge>
      <bpmndi:BPMNEdge id="Flow_2_di" bpmnElement="Flow_2">
        <di:waypoint x="350" y="150" />
        <di:waypoint x="400" y="150" />
      </bpmndi:BPMNEdge>
      <bpmndi:BPMNEdge id="Flow_3_di" bpmnElement="Flow_3">
        <di:waypoint x="500" y="150" />
        <di:waypoint x="525" y="150" />
        <di:waypoint x="525" y="350" />
        <di:waypoint x="550" y="350" />
      </bpmndi:BPMNEdge>
      <bpmndi:BPMNEdge id="Flow_4_di" bpmnElement="Flow_4">
        <di:waypoint x="650" y="350" />
        <di:waypoint x="700" y="350" />
      </bpmndi:BPMNEdge>
      <bpmndi:BPMNEdge id="Flow_Orphan_di" bpmnElement="Flow_Orphan">
        <di:waypoint x="0" y="0" />
      </bpmndi:BPMNEdge>
    </bpmndi:BPMNPlane>
  </bpmndi:BPMNDiagram>
</bpmn:definitions>'''


@pytest.fixture
def single_lane_bpmn():
    """One lane named Actor with a single task and no participant"""
    return f'''<bpmn:definitions {NAMESPACES} id="Definitions_2">
  <bpmn:process id="Process_2">
    <bpmn:laneSet id="LaneSet_2">
      <bpmn:lane id="Lane_1" name="Actor">
        <bpmn:flowNodeRef>Activity_Review</bpmn:flowNodeRef>
      </bpmn:lane>
    </bpmn:laneSet>
    <bpmn:task id="Activity_Review" name="Review Request" />
  </bpmn:process>
  <bpmndi:BPMNDiagram id="BPMNDiagram_2">
    <bpmndi:BPMNPlane id="BPMNPlane_2" bpmnElement="Process_2">
      <bpmndi:BPMNShape id="Lane_1_di" bpmnElement="Lane_1">
        <dc:Bounds x="0" y="0" width="600" height="200" />
      </bpmndi:BPMNShape>
      <bpmndi:BPMNShape id="Activity_Review_di" bpmnElement="Activity_Review">
        <dc:Bounds x="100" y="60" width="100" height="80" />
      </bpmndi:BPMNShape>
    </bpmndi:BPMNPlane>
  </bpmndi:BPMNDiagram>
</bpmn:definitions>'''


@pytest.fixture
def kpi_catalogue():
    return [
        {'id': 'k1', 'name': 'Cycle Time', 'type': 'Efficiency', 'direction': 'Lower is better',
         'target': 5, 'unit': 'days', 'description': 'Days from request to approval',
         'active': True, 'associated_bpmn_processes': ['p1', 'p2']},
        {'id': 'k2', 'name': 'Rework Rate', 'type': 'Quality', 'direction': 'Lower is better',
         'target': 2, 'unit': '%', 'description': 'Share of returned requests', 'active': True},
        {'id': 'k3', 'name': 'Approval Rate', 'type': 'Effectiveness', 'direction': 'Higher is better',
         'target': 90, 'unit': '%', 'description': 'approved / submitted', 'active': False},
    ]


@pytest.fixture
def app(tmp_path):
    app = create_app(str(tmp_path / 'data'))
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def logged_in_client(client):
    client.post('/api/user/set', json={'user_id': 'alice'})
    return client
