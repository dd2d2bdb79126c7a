import logging
from datetime import datetime, timezone

import dash
from dash import dcc, html, Input, Output, State, dash_table
import pandas as pd
import plotly.graph_objects as go

import formatting
import student_list
from backend_client import BackendClient, BackendError, InvalidStatusError
from generate_data import DemoBackend, generate_students
from settings import load_settings, configure_logging

logger = logging.getLogger(__name__)

# --- Custom Styles & Colors ---
COLOR_PRIMARY = '#3742fa'
COLOR_RED = '#ff4757'
COLOR_COUNSELOR = '#ff3838'
COLOR_GREEN = '#2ed573'
COLOR_BG_LIGHT = '#F5F5F5'
COLOR_BG_DARK = '#212121'
CARD_STYLE = {
    'backgroundColor': 'white',
    'borderRadius': '12px',
    'boxShadow': '0 4px 12px rgba(0,0,0,0.15)',
    'padding': '20px',
    'transition': 'all 0.3s ease-in-out',
}

STUDENTS_STORE = 'students-store'
ALL_STUDENTS_STORE = 'all-students-store'
ANALYTICS_STORE = 'analytics-store'
CALLS_STORE = 'calls-store'

STATUS_FILTER_OPTIONS = [{'label': 'All Statuses', 'value': 'all'}] + formatting.STATUS_OPTIONS
RISK_FILTER_OPTIONS = [
    {'label': 'All Risk Levels', 'value': 'all'},
    {'label': 'High Risk', 'value': 'high'},
    {'label': 'Medium Risk', 'value': 'medium'},
    {'label': 'Low Risk', 'value': 'low'},
]
DATE_RANGE_OPTIONS = [
    {'label': 'Last 24 hours', 'value': '1'},
    {'label': 'Last 7 days', 'value': '7'},
    {'label': 'Last 30 days', 'value': '30'},
    {'label': 'Last 90 days', 'value': '90'},
]

ACTION_MESSAGES = {
    'voice_call': 'Voice call initiated successfully!',
    'whatsapp': 'WhatsApp message sent successfully!',
    'status_update': 'Student status updated.',
}


# --- Data helpers ---

def filter_students(students, status='all', risk_level='all', date_range=None, now=None):
    """Returns the students matching the dashboard filters, in their original order."""
    if not students:
        return []
    df = pd.DataFrame({
        'status': [s.get('status') for s in students],
        'riskLevel': [s.get('riskLevel') for s in students],
        'createdAt': pd.to_datetime([s.get('createdAt') for s in students], utc=True, errors='coerce',
                                    format='ISO8601'),
    })
    mask = pd.Series(True, index=df.index)
    if status and status != 'all':
        mask &= df['status'] == status
    if risk_level and risk_level != 'all':
        mask &= df['riskLevel'] == risk_level
    if date_range:
        now = pd.Timestamp(now or datetime.now(timezone.utc))
        if now.tzinfo is None:
            now = now.tz_localize('UTC')
        cutoff = now - pd.Timedelta(days=int(date_range))
        mask &= df['createdAt'] >= cutoff
    return [students[i] for i in df.index[mask]]


def compute_kpis(students, analytics=None):
    analytics = analytics or {}
    return {
        'total': analytics.get('totalStudents') or len(students),
        'high_risk': sum(1 for s in students if s.get('riskLevel') == 'high'),
        'counselor_required': sum(1 for s in students if s.get('status') == 'counselor_required'),
        'follow_up': sum(1 for s in students
                         if (s.get('lastCallAnalysis') or {}).get('requiresCounselorFollowUp')),
        'total_calls': analytics.get('totalCalls', 0),
        'call_success_rate': analytics.get('callSuccessRate', 0),
        'total_notifications': analytics.get('totalNotifications', 0),
        'conversion_rate': analytics.get('conversionRate', 0),
    }


def calls_table_rows(calls, format_date=formatting.format_date):
    rows = []
    for call in calls or []:
        analysis = call.get('analysis') or {}
        duration = call.get('duration')
        rows.append({
            'student': call.get('studentName') or 'Unknown',
            'date': format_date(call.get('startTime')),
            'duration': f"{duration // 1000}s" if duration else 'N/A',
            'status': call.get('status'),
            'emotion': analysis.get('emotion') or 'Not analyzed',
            'action': 'Counselor Follow-up' if analysis.get('requiresCounselorFollowUp') else 'None',
        })
    return rows


def build_handlers(backend):
    """Wraps backend actions so a failed request is logged and reported instead of raised."""

    def guarded(action, fn):
        def call(*args):
            try:
                fn(*args)
            except (BackendError, InvalidStatusError) as e:
                logger.warning("%s failed for %s: %s", action, args[0], e)
                return {'ok': False, 'message': f"Failed: {e}"}
            return {'ok': True, 'message': ACTION_MESSAGES[action]}
        return call

    return student_list.StudentListHandlers(
        trigger_voice_call=guarded('voice_call', backend.trigger_voice_call),
        send_whatsapp_message=guarded('whatsapp', backend.send_whatsapp_message),
        update_student_status=guarded('status_update', backend.update_student_status),
        format_date=formatting.format_date,
        get_risk_color=formatting.get_risk_color,
        get_status_color=formatting.get_status_color,
    )


def build_backend(settings):
    if settings.demo_mode:
        logger.info("API_BASE_URL not set, running with %d demo students", settings.demo_student_count)
        return DemoBackend(generate_students(settings.demo_student_count, seed=settings.demo_seed),
                           seed=settings.demo_seed)
    return BackendClient(settings.api_base_url, timeout=settings.api_timeout, token=settings.api_token)


# --- Component Layouts ---

def kpi_card(title, value, subtitle, color):
    return html.Div(style={**CARD_STYLE, 'borderBottom': f'5px solid {color}', 'textAlign': 'center'}, children=[
        html.P(title, style={'fontSize': '1.0em', 'opacity': '0.9', 'marginBottom': '5px'}),
        html.P(f"{value}", style={'fontSize': '2.4em', 'fontWeight': '900', 'margin': '0', 'color': color}),
        html.Small(subtitle, style={'color': '#757575'}),
    ])


def render_kpis(kpis, date_range):
    return [
        kpi_card("Total Students 👨‍🎓", kpis['total'], f"Last {date_range} days", COLOR_PRIMARY),
        kpi_card("Voice Calls Made 📞", kpis['total_calls'], f"Success rate: {kpis['call_success_rate']}%",
                 '#5352ed'),
        kpi_card("WhatsApp Messages 💬", kpis['total_notifications'], "Automated notifications sent", '#00d2d3'),
        kpi_card("Conversion Rate 🎯", f"{kpis['conversion_rate']}%", "Inquiries to applications", COLOR_GREEN),
        kpi_card("High Risk Students 🚨", kpis['high_risk'], "Require immediate attention", COLOR_RED),
        kpi_card("Counselor Required 🧑‍🏫", kpis['counselor_required'], "Need human intervention",
                 COLOR_COUNSELOR),
        kpi_card("Needs Follow-up 📋", kpis['follow_up'], "Flagged by last call analysis", COLOR_COUNSELOR),
    ]


def distribution_figure(title, counts, colors):
    labels = list(counts)
    fig = go.Figure(data=[go.Pie(
        labels=labels,
        values=[counts[label] for label in labels],
        hole=.3,
        marker_colors=[colors.get(label, formatting.COLOR_NEUTRAL) for label in labels],
        hoverinfo='label+percent',
        textinfo='value',
    )])
    fig.update_layout(
        title_text=title,
        title_x=0.5,
        margin=dict(t=30, b=0, l=0, r=0),
        legend=dict(orientation="h", yanchor="bottom", y=-0.2, xanchor="center", x=0.5),
        height=300,
        paper_bgcolor='white'
    )
    return fig


def risk_distribution_figure(students):
    counts = pd.Series([s.get('riskLevel') or 'unassessed' for s in students], dtype=object).value_counts()
    return distribution_figure("Risk Distribution", counts.to_dict(), formatting.RISK_COLORS)


def status_breakdown_figure(students):
    counts = pd.Series([formatting.status_label(s.get('status', '')) for s in students], dtype=object).value_counts()
    colors = {formatting.status_label(k): v for k, v in formatting.STATUS_COLORS.items()}
    return distribution_figure("Status Breakdown", counts.to_dict(), colors)


def get_header():
    return html.Div(style={'backgroundColor': COLOR_BG_DARK, 'color': 'white', 'padding': '15px 30px',
                           'display': 'flex', 'justifyContent': 'space-between', 'alignItems': 'center'},
                    children=[
                        html.H2("EduNudge AI - Admission Management Dashboard",
                                style={'margin': '0', 'fontSize': '24px'}),
                        html.Button('🔄 Refresh', id='refresh-button', n_clicks=0,
                                    style={'fontSize': '16px', 'cursor': 'pointer', 'backgroundColor': COLOR_PRIMARY,
                                           'color': 'white', 'border': 'none', 'borderRadius': '6px',
                                           'padding': '8px 15px', 'fontWeight': 'bold'}),
                    ])


def get_filters():
    def dropdown(label, id_, options, value):
        return html.Div(style={'flexGrow': '1'}, children=[
            html.Label(label, style={'fontWeight': 'bold', 'display': 'block', 'marginBottom': '5px'}),
            dcc.Dropdown(id=id_, options=options, value=value, clearable=False),
        ])

    return html.Div(style={**CARD_STYLE, 'display': 'flex', 'gap': '20px', 'marginBottom': '30px'}, children=[
        dropdown("Filter by Status:", 'status-filter', STATUS_FILTER_OPTIONS, 'all'),
        dropdown("Filter by Risk Level:", 'risk-filter', RISK_FILTER_OPTIONS, 'all'),
        dropdown("Date Range:", 'date-range-filter', DATE_RANGE_OPTIONS, '7'),
    ])


def get_calls_section():
    return html.Div(style={**CARD_STYLE, 'marginTop': '30px'}, children=[
        html.H2("Recent Voice Calls", style={'marginTop': '0'}),
        dash_table.DataTable(
            id='calls-table',
            columns=[
                {"name": "Student", "id": "student"},
                {"name": "Date", "id": "date"},
                {"name": "Duration", "id": "duration"},
                {"name": "Status", "id": "status"},
                {"name": "Emotion", "id": "emotion"},
                {"name": "Action Required", "id": "action"},
            ],
            data=[],
            page_action="native",
            page_size=10,
            style_cell={'textAlign': 'left', 'padding': '10px', 'fontSize': '14px'},
            style_header={'backgroundColor': COLOR_PRIMARY, 'color': 'white', 'fontWeight': 'bold'},
            style_data_conditional=[
                {'if': {'column_id': 'status', 'filter_query': '{status} = "completed"'},
                 'color': COLOR_GREEN, 'fontWeight': 'bold'},
                {'if': {'column_id': 'status', 'filter_query': '{status} != "completed"'},
                 'color': COLOR_RED, 'fontWeight': 'bold'},
                {'if': {'column_id': 'action', 'filter_query': '{action} = "Counselor Follow-up"'},
                 'color': COLOR_COUNSELOR, 'fontWeight': 'bold'},
            ],
            style_table={'overflowX': 'auto', 'border': '1px solid #e0e0e0', 'borderRadius': '8px'}
        ),
    ])


def get_layout(settings):
    return html.Div(style={'backgroundColor': COLOR_BG_LIGHT, 'minHeight': '100vh'}, children=[
        dcc.Store(id=ALL_STUDENTS_STORE, data=[]),
        dcc.Store(id=STUDENTS_STORE, data=[]),
        dcc.Store(id=ANALYTICS_STORE, data={}),
        dcc.Store(id=CALLS_STORE, data=[]),
        dcc.Interval(id='refresh-interval', interval=settings.refresh_interval_ms, n_intervals=0),

        get_header(),
        html.Div(style={'padding': '30px', 'maxWidth': '1400px', 'margin': 'auto'}, children=[
            html.Div(id='feedback-banner'),
            html.Div(id='kpi-grid', style={'display': 'grid',
                                           'gridTemplateColumns': 'repeat(auto-fit, minmax(200px, 1fr))',
                                           'gap': '20px', 'marginBottom': '30px'}),
            html.Div(style={'display': 'grid', 'gridTemplateColumns': '1fr 1fr', 'gap': '20px',
                            'marginBottom': '30px'}, children=[
                html.Div(style={**CARD_STYLE, 'padding': '15px'}, children=[
                    dcc.Graph(id='risk-pie-chart', config={'displayModeBar': False})]),
                html.Div(style={**CARD_STYLE, 'padding': '15px'}, children=[
                    dcc.Graph(id='status-pie-chart', config={'displayModeBar': False})]),
            ]),
            get_filters(),
            student_list.student_list_layout(),
            get_calls_section(),
        ]),
    ])


def feedback_banner(message, ok=True):
    color = COLOR_GREEN if ok else COLOR_RED
    return html.Div(message, style={'padding': '12px 20px', 'marginBottom': '20px', 'borderRadius': '6px',
                                    'backgroundColor': 'white', 'borderLeft': f'5px solid {color}',
                                    'color': color, 'fontWeight': 'bold'})


# --- App ---

def create_app(settings=None, backend=None):
    settings = settings or load_settings()
    backend = backend or build_backend(settings)
    handlers = build_handlers(backend)

    dash_app = dash.Dash(__name__, suppress_callback_exceptions=True, title='EduNudge Dashboard')
    dash_app.layout = get_layout(settings)
    student_list.register_callbacks(dash_app, handlers, STUDENTS_STORE)

    @dash_app.callback(
        Output(ALL_STUDENTS_STORE, 'data'),
        Output(ANALYTICS_STORE, 'data'),
        Output(CALLS_STORE, 'data'),
        Output('feedback-banner', 'children'),
        Input('refresh-interval', 'n_intervals'),
        Input('refresh-button', 'n_clicks'),
        Input(student_list.ACTION_STORE, 'data'),
        State('date-range-filter', 'value'),
    )
    def refresh_data(n_intervals, refresh_clicks, action_record, date_range):
        banner = dash.no_update
        if dash.ctx.triggered_id == student_list.ACTION_STORE and action_record:
            result = action_record.get('result') or {}
            banner = feedback_banner(result.get('message', ''), result.get('ok', True))

        try:
            students = backend.get_students()
            analytics = backend.get_analytics(date_range or '7')
            calls = backend.get_calls(50)
        except BackendError as e:
            logger.error("Dashboard refresh failed: %s", e)
            failure = feedback_banner(f"Could not refresh dashboard data: {e}", ok=False)
            if banner is not dash.no_update:
                failure = html.Div([banner, failure])
            return dash.no_update, dash.no_update, dash.no_update, failure

        logger.debug("Dashboard refreshed: %d students, %d calls", len(students), len(calls))
        return students, analytics, calls, banner

    @dash_app.callback(
        Output(STUDENTS_STORE, 'data'),
        Input(ALL_STUDENTS_STORE, 'data'),
        Input('status-filter', 'value'),
        Input('risk-filter', 'value'),
        Input('date-range-filter', 'value'),
    )
    def apply_filters(students, status, risk_level, date_range):
        return filter_students(students, status, risk_level, date_range)

    @dash_app.callback(
        Output('kpi-grid', 'children'),
        Output('risk-pie-chart', 'figure'),
        Output('status-pie-chart', 'figure'),
        Input(STUDENTS_STORE, 'data'),
        Input(ANALYTICS_STORE, 'data'),
        State('date-range-filter', 'value'),
    )
    def update_overview(students, analytics, date_range):
        students = students or []
        kpis = compute_kpis(students, analytics)
        return (render_kpis(kpis, date_range or '7'), risk_distribution_figure(students),
                status_breakdown_figure(students))

    @dash_app.callback(
        Output('calls-table', 'data'),
        Input(CALLS_STORE, 'data'),
    )
    def update_calls_table(calls):
        return calls_table_rows(calls)

    return dash_app


if __name__ == '__main__':
    settings = load_settings()
    configure_logging(settings.log_level)
    app = create_app(settings)
    app.run(debug=settings.debug, host=settings.host, port=settings.port)
