"""
Student roster panel: a grid of student cards, a detail modal for the
selected student, and the action controls (voice call, WhatsApp, status
change, email).

Everything that talks to the outside world is injected through
StudentListHandlers. The panel itself only renders the snapshot it is given
and keeps one piece of view state: which student, if any, is open in the
modal.
"""
import logging
from typing import Callable, NamedTuple

import dash
from dash import dcc, html, Input, Output, State, ALL

import formatting

logger = logging.getLogger(__name__)

FOLLOW_UP_TEMPLATE = 'followUp'

# --- Component ids ---
CARD = 'student-card'
CARD_CALL = 'card-call-btn'
CARD_WHATSAPP = 'card-whatsapp-btn'
CARD_STATUS = 'card-status-select'
MODAL_CALL = 'modal-call-btn'
MODAL_WHATSAPP = 'modal-whatsapp-btn'
MODAL_DISMISS = 'modal-dismiss'

SELECTED_STORE = 'selected-student-id'
ACTION_STORE = 'student-action-result'
DISPATCHED_STATUS_STORE = 'student-dispatched-status'
LIST_BODY = 'student-list-body'
MODAL_CONTAINER = 'student-modal'

CALL_CONTROLS = (CARD_CALL, MODAL_CALL)
WHATSAPP_CONTROLS = (CARD_WHATSAPP, MODAL_WHATSAPP)

# --- Styles ---
COLOR_BG_DARK = '#212121'
COLOR_PRIMARY = '#1976D2'
CARD_STYLE = {
    'backgroundColor': 'white',
    'borderRadius': '12px',
    'boxShadow': '0 4px 12px rgba(0,0,0,0.15)',
    'padding': '20px',
    'display': 'flex',
    'flexDirection': 'column',
    'justifyContent': 'space-between',
}
BADGE_STYLE = {
    'color': 'white',
    'borderRadius': '12px',
    'padding': '3px 10px',
    'fontSize': '0.8em',
    'fontWeight': 'bold',
    'textTransform': 'capitalize',
}
BUTTON_STYLE = {
    'padding': '8px 12px',
    'border': 'none',
    'borderRadius': '6px',
    'cursor': 'pointer',
    'fontWeight': 'bold',
    'color': 'white',
}
VOICE_BUTTON_STYLE = {**BUTTON_STYLE, 'backgroundColor': '#5352ed'}
WHATSAPP_BUTTON_STYLE = {**BUTTON_STYLE, 'backgroundColor': '#25D366'}
EMAIL_BUTTON_STYLE = {**BUTTON_STYLE, 'backgroundColor': COLOR_PRIMARY, 'textDecoration': 'none',
                      'display': 'inline-block'}
OVERLAY_STYLE = {
    'position': 'fixed', 'zIndex': '1001', 'left': '0', 'top': '0',
    'width': '100%', 'height': '100%', 'overflow': 'auto',
    'display': 'flex', 'alignItems': 'center', 'justifyContent': 'center',
}
BACKDROP_STYLE = {
    'position': 'absolute', 'left': '0', 'top': '0', 'width': '100%', 'height': '100%',
    'backgroundColor': 'rgba(0,0,0,0.5)',
}
MODAL_CONTENT_STYLE = {
    'position': 'relative', 'zIndex': '1',
    'backgroundColor': 'white', 'padding': '30px', 'borderRadius': '8px', 'width': '80%',
    'maxWidth': '800px', 'maxHeight': '90vh', 'overflowY': 'auto',
    'boxShadow': '0 10px 30px rgba(0,0,0,0.3)',
}
SECTION_HEADING_STYLE = {'color': COLOR_PRIMARY, 'borderBottom': '1px solid #e0e0e0', 'paddingBottom': '5px'}


class StudentListHandlers(NamedTuple):
    """Behavior the panel delegates to its owner."""
    trigger_voice_call: Callable
    send_whatsapp_message: Callable
    update_student_status: Callable
    format_date: Callable = formatting.format_date
    get_risk_color: Callable = formatting.get_risk_color
    get_status_color: Callable = formatting.get_status_color


def _field(label, value):
    return html.P([html.Strong(f"{label}: "), value], style={'margin': '4px 0'})


def _last_activity(student):
    return student.get('lastActivity') or student.get('createdAt')


# --- Card ---

def render_student_card(student, handlers):
    """Compact summary tile for one student."""
    student_id = student.get('id')
    risk_level = student.get('riskLevel')
    status = student.get('status')

    info = [
        _field('Program', student.get('inquiryType')),
        _field('Phone', student.get('phone')),
        _field('Email', student.get('email')),
        _field('Last Activity', handlers.format_date(_last_activity(student))),
    ]
    call_analysis = student.get('lastCallAnalysis')
    if call_analysis:
        info.append(_field('Last Call Emotion', call_analysis.get('emotion')))

    # Actions sit beside the clickable region, never inside it, so using a
    # control does not also select the card.
    selectable = html.Div(
        id={'type': CARD, 'index': student_id},
        n_clicks=0,
        className='student-card-body',
        style={'cursor': 'pointer'},
        children=[
            html.Div(className='student-header', style={'marginBottom': '10px'}, children=[
                html.H3(student.get('name'), style={'margin': '0 0 8px 0', 'color': COLOR_BG_DARK}),
                html.Div(className='student-badges', style={'display': 'flex', 'gap': '8px'}, children=[
                    html.Span(risk_level or 'unassessed', className='risk-badge',
                              style={**BADGE_STYLE, 'backgroundColor': handlers.get_risk_color(risk_level)}),
                    html.Span(formatting.status_label(status), className='status-badge',
                              style={**BADGE_STYLE, 'backgroundColor': handlers.get_status_color(status)}),
                ]),
            ]),
            html.Div(info, className='student-info', style={'fontSize': '0.9em'}),
        ],
    )

    actions = html.Div(
        className='student-actions',
        style={'display': 'flex', 'gap': '8px', 'alignItems': 'center', 'marginTop': '15px'},
        children=[
            html.Button('📞 Call', id={'type': CARD_CALL, 'index': student_id}, n_clicks=0,
                        className='action-btn voice-btn', style=VOICE_BUTTON_STYLE),
            html.Button('💬 WhatsApp', id={'type': CARD_WHATSAPP, 'index': student_id}, n_clicks=0,
                        className='action-btn whatsapp-btn', style=WHATSAPP_BUTTON_STYLE),
            dcc.Dropdown(
                id={'type': CARD_STATUS, 'index': student_id},
                options=formatting.STATUS_OPTIONS,
                value=status,
                clearable=False,
                searchable=False,
                className='status-select',
                style={'flexGrow': '1', 'minWidth': '170px', 'fontSize': '0.85em'},
            ),
        ],
    )

    return html.Div(className='student-card', style=CARD_STYLE, children=[selectable, actions])


# --- Modal ---

def render_student_modal(student, handlers):
    """Full detail overlay for the selected student, or None when nothing is selected."""
    if not student:
        return None

    student_id = student.get('id')
    details = [
        html.H3('Contact Information', style=SECTION_HEADING_STYLE),
        _field('Phone', student.get('phone')),
        _field('Email', student.get('email')),
        _field('Program Interest', student.get('inquiryType')),

        html.H3('Application Status', style=SECTION_HEADING_STYLE),
        _field('Current Status', student.get('status')),
        _field('Risk Level', student.get('riskLevel') or 'Not assessed'),
        _field('Created', handlers.format_date(student.get('createdAt'))),
        _field('Last Activity', handlers.format_date(_last_activity(student))),
    ]

    call_analysis = student.get('lastCallAnalysis')
    if call_analysis:
        details += [
            html.H3('Last Call Analysis', style=SECTION_HEADING_STYLE),
            _field('Emotion', call_analysis.get('emotion')),
            _field('Concerns', call_analysis.get('concerns')),
            _field('Next Steps', call_analysis.get('nextSteps')),
            _field('Needs Counselor', 'Yes' if call_analysis.get('requiresCounselorFollowUp') else 'No'),
        ]

    briefing = student.get('counselorBriefing')
    if briefing:
        details += [
            html.H3('Counselor Briefing', style=SECTION_HEADING_STYLE),
            html.Div(briefing, className='counselor-briefing',
                     style={'backgroundColor': '#F5F5F5', 'padding': '12px', 'borderRadius': '6px',
                            'whiteSpace': 'pre-wrap'}),
        ]

    content = html.Div(className='modal-content', style=MODAL_CONTENT_STYLE, children=[
        html.Div(className='modal-header',
                 style={'display': 'flex', 'justifyContent': 'space-between', 'alignItems': 'center'},
                 children=[
                     html.H2(student.get('name'), style={'margin': '0'}),
                     html.Button('×', id={'type': MODAL_DISMISS, 'index': 'close'}, n_clicks=0,
                                 className='close-btn',
                                 style={'fontSize': '28px', 'border': 'none', 'background': 'none',
                                        'cursor': 'pointer', 'color': COLOR_BG_DARK}),
                 ]),
        html.Div(className='modal-body', children=[
            html.Div(details, className='student-details'),
            html.Div(className='modal-actions', style={'display': 'flex', 'gap': '10px', 'marginTop': '20px'},
                     children=[
                         html.Button('📞 Initiate Voice Call', id={'type': MODAL_CALL, 'index': student_id},
                                     n_clicks=0, className='action-btn voice-btn', style=VOICE_BUTTON_STYLE),
                         html.Button('💬 Send WhatsApp', id={'type': MODAL_WHATSAPP, 'index': student_id},
                                     n_clicks=0, className='action-btn whatsapp-btn', style=WHATSAPP_BUTTON_STYLE),
                         html.A('✉️ Send Email', href=f"mailto:{student.get('email')}", target='_blank',
                                className='action-btn email-btn', style=EMAIL_BUTTON_STYLE),
                     ]),
        ]),
    ])

    # The backdrop and the content are siblings: clicks inside the content
    # never reach the dismiss target.
    return html.Div(className='modal-overlay', style=OVERLAY_STYLE, children=[
        html.Div(id={'type': MODAL_DISMISS, 'index': 'backdrop'}, n_clicks=0,
                 className='modal-backdrop', style=BACKDROP_STYLE),
        content,
    ])


# --- List container ---

def student_list_layout():
    """Static shell: selection store, list body and modal mount point."""
    return html.Section(className='students-section', children=[
        dcc.Store(id=SELECTED_STORE, data=None),
        dcc.Store(id=ACTION_STORE, data=None),
        dcc.Store(id=DISPATCHED_STATUS_STORE, data={}),
        html.Div(id=LIST_BODY),
        html.Div(id=MODAL_CONTAINER),
    ])


def render_student_list(students, handlers):
    students = students or []
    children = [
        html.H2(f"Students ({len(students)})", style={'color': COLOR_BG_DARK}),
        html.Div(
            className='students-grid',
            style={'display': 'grid', 'gridTemplateColumns': 'repeat(auto-fill, minmax(320px, 1fr))',
                   'gap': '20px'},
            children=[render_student_card(student, handlers) for student in students],
        ),
    ]
    if len(students) == 0:
        children.append(html.Div(className='empty-state',
                                 style={'textAlign': 'center', 'padding': '40px', 'color': '#757575'},
                                 children=[html.P('No students found with current filters.')]))
    return children


# --- Selection state ---

def next_selection(current, triggered_id, value):
    """
    Selection transition for one UI event.

    A card click opens that student (also when another one is already open),
    the close control or the backdrop closes the modal, and anything else,
    including a component mounting with zero clicks, leaves it unchanged.
    """
    if not value or not isinstance(triggered_id, dict):
        return current
    kind = triggered_id.get('type')
    if kind == CARD:
        return triggered_id.get('index')
    if kind == MODAL_DISMISS:
        return None
    return current


def resolve_selected(students, selected_id):
    if selected_id is None:
        return None
    for student in students or []:
        if student.get('id') == selected_id:
            return student
    return None


def prune_selection(current, students):
    """Closes the modal when the selected student is no longer in the roster."""
    if current is not None and resolve_selected(students, current) is None:
        return None
    return current


# --- Actions ---

def known_status(students, dispatched, student_id):
    """Last status sent for a student from this panel, else the one in the snapshot."""
    if dispatched and str(student_id) in dispatched:
        return dispatched[str(student_id)]
    student = resolve_selected(students, student_id)
    return student.get('status') if student is not None else None


def dispatch_action(triggered_id, value, students, handlers, dispatched=None):
    """
    Fires the handler behind one action control and returns a record of what
    was fired, or None when the event is not an action (mount, or a status
    dropdown echoing the status it already shows). Handler outcomes are
    passed through untouched.
    """
    if not value or not isinstance(triggered_id, dict):
        return None

    kind = triggered_id.get('type')
    student_id = triggered_id.get('index')

    if kind in CALL_CONTROLS:
        action = 'voice_call'
        result = handlers.trigger_voice_call(student_id)
    elif kind in WHATSAPP_CONTROLS:
        action = 'whatsapp'
        result = handlers.send_whatsapp_message(student_id, FOLLOW_UP_TEMPLATE)
    elif kind == CARD_STATUS:
        if known_status(students, dispatched, student_id) == value:
            return None
        action = 'status_update'
        result = handlers.update_student_status(student_id, value)
    else:
        return None

    logger.info("Student action %s fired for %s", action, student_id)
    return {'action': action, 'studentId': student_id, 'value': value, 'result': result}


# --- Callbacks ---

def register_callbacks(app, handlers, students_store_id):
    """Wires the panel into a Dash app whose students live in `students_store_id`."""

    @app.callback(
        Output(LIST_BODY, 'children'),
        Input(students_store_id, 'data'),
    )
    def update_student_list(students):
        return render_student_list(students, handlers)

    @app.callback(
        Output(SELECTED_STORE, 'data'),
        Input({'type': CARD, 'index': ALL}, 'n_clicks'),
        Input({'type': MODAL_DISMISS, 'index': ALL}, 'n_clicks'),
        Input(students_store_id, 'data'),
        State(SELECTED_STORE, 'data'),
        prevent_initial_call=True
    )
    def update_selection(card_clicks, dismiss_clicks, students, current):
        if not dash.ctx.triggered:
            raise dash.exceptions.PreventUpdate
        if dash.ctx.triggered_id == students_store_id:
            selected = prune_selection(current, students)
        else:
            selected = next_selection(current, dash.ctx.triggered_id, dash.ctx.triggered[0]['value'])
        if selected == current:
            return dash.no_update
        return selected

    @app.callback(
        Output(MODAL_CONTAINER, 'children'),
        Input(SELECTED_STORE, 'data'),
        Input(students_store_id, 'data'),
    )
    def update_modal(selected_id, students):
        return render_student_modal(resolve_selected(students, selected_id), handlers)

    @app.callback(
        Output(ACTION_STORE, 'data'),
        Output(DISPATCHED_STATUS_STORE, 'data'),
        Input({'type': CARD_CALL, 'index': ALL}, 'n_clicks'),
        Input({'type': CARD_WHATSAPP, 'index': ALL}, 'n_clicks'),
        Input({'type': CARD_STATUS, 'index': ALL}, 'value'),
        Input({'type': MODAL_CALL, 'index': ALL}, 'n_clicks'),
        Input({'type': MODAL_WHATSAPP, 'index': ALL}, 'n_clicks'),
        State(students_store_id, 'data'),
        State(DISPATCHED_STATUS_STORE, 'data'),
        prevent_initial_call=True
    )
    def fire_action(card_calls, card_messages, statuses, modal_calls, modal_messages, students, dispatched):
        if not dash.ctx.triggered:
            raise dash.exceptions.PreventUpdate
        record = dispatch_action(dash.ctx.triggered_id, dash.ctx.triggered[0]['value'], students, handlers,
                                 dispatched)
        if record is None:
            return dash.no_update, dash.no_update
        if record['action'] != 'status_update':
            return record, dash.no_update
        return record, {**(dispatched or {}), str(record['studentId']): record['value']}
