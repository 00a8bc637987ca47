"""
SitWell Streamlit UI - Live session status, reports, achievements and settings
PRIVACY: No frames displayed or saved, only counters.
"""
import streamlit as st
import sys
from pathlib import Path
import pandas as pd

sys.path.insert(0, str(Path(__file__).parent.parent))

from sitwell.app_context import AppContext
from sitwell.reports import NoDataReport
from sitwell.status_bus import read_status
from sitwell.storage import export_filename, history_to_json
from streamlit_autorefresh import st_autorefresh

STORAGE_DIR = "storage"

# Page config
st.set_page_config(page_title="SitWell", page_icon="🪑", layout="wide")

# CSS
st.markdown("""
<style>
.status-good { color: #28a745; font-weight: bold; }
.status-issue { color: #dc3545; font-weight: bold; }
.status-paused { color: #6c757d; font-weight: bold; }
.waiting-banner {
    background-color: #fff3cd;
    border: 1px solid #ffc107;
    color: #856404;
    padding: 1rem;
    border-radius: 0.5rem;
    margin: 1rem 0;
}
</style>
""", unsafe_allow_html=True)

# Auto-refresh every 2 seconds
st_autorefresh(interval=2000, key="datarefresh")

# Initialize session state
if 'ctx' not in st.session_state:
    st.session_state.ctx = AppContext.create(storage_dir=STORAGE_DIR)
ctx = st.session_state.ctx

st.title("🪑 SitWell")
st.caption("Privacy-first posture tracking - No frames saved")

tab_live, tab_reports, tab_achievements, tab_settings = st.tabs(
    ["📊 Live", "📈 Reports", "🏆 Achievements", "⚙️ Settings"]
)

# Live status
with tab_live:
    status = read_status(str(Path(STORAGE_DIR) / "status.json"), max_age_sec=5.0)

    if not status or not status.get("session"):
        st.markdown("""
        <div class="waiting-banner">
            <strong>⏳ No active session</strong><br>
            To start monitoring, run in a terminal:<br>
            <code>python dev_runner.py run</code>
        </div>
        """, unsafe_allow_html=True)
    else:
        session = status["session"]
        state = status["state"]
        issues = status.get("issues") or []

        if state == "paused":
            st.markdown('<p class="status-paused">⏸ PAUSED - Samples are ignored</p>', unsafe_allow_html=True)
        elif state == "stopped":
            st.markdown('<p class="status-paused">■ STOPPED - Session saved</p>', unsafe_allow_html=True)
        elif issues:
            st.markdown(f'<p class="status-issue">⚠ {" · ".join(issues)}</p>', unsafe_allow_html=True)
        else:
            st.markdown('<p class="status-good">● GOOD - Posture within thresholds</p>', unsafe_allow_html=True)

        col1, col2, col3, col4 = st.columns(4)
        ratio = status.get("good_ratio")
        with col1:
            st.metric("Elapsed", f"{status['elapsed_sec'] / 60:.1f}m")
        with col2:
            st.metric("Good Ratio", f"{ratio}%" if ratio is not None else "--")
        with col3:
            st.metric("Good Streak", f"{session['continuous_good']}s",
                      delta=f"best {session['max_continuous_good']}s", delta_color="off")
        with col4:
            st.metric("Alerts", session["alerts"])

        if status.get("persist_failures"):
            st.warning(f"{status['persist_failures']} snapshot(s) failed to save; retrying")

# Reports
with tab_reports:
    st.header("Today")
    daily = ctx.daily_report()
    if isinstance(daily, NoDataReport):
        st.info("No sessions today yet.")
    else:
        col1, col2, col3, col4 = st.columns(4)
        with col1:
            st.metric("Sessions", daily.session_count)
        with col2:
            st.metric("Total Time", f"{daily.total_minutes:.1f}m")
        with col3:
            st.metric("Good Ratio", f"{daily.good_ratio}%")
        with col4:
            st.metric("Longest Streak", f"{daily.max_continuous_minutes:.1f}m")
        st.write(f"**Trend:** {daily.trend_message}")

        labels, values = ctx.reports.split(ctx.today())
        split_df = pd.DataFrame({"minutes": values}, index=labels)
        st.bar_chart(split_df)

    st.header("This Week")
    weekly = ctx.weekly_report()
    if isinstance(weekly, NoDataReport):
        st.info("No sessions in the last 7 days.")
    else:
        col1, col2 = st.columns(2)
        with col1:
            st.metric("Days Tracked", weekly.day_count)
        with col2:
            st.metric("Average Good Ratio", f"{weekly.average_ratio}%")
        st.write(f"**Trend:** {weekly.trend_message}")

        labels, ratios = ctx.reports.trend(ctx.clock())
        st.line_chart(pd.DataFrame({"good ratio (%)": ratios}, index=labels))

        df = pd.DataFrame([
            {
                "date": d.date,
                "good (min)": round(d.good_minutes, 1),
                "poor (min)": round(d.bad_minutes, 1),
                "ratio (%)": d.ratio
            }
            for d in weekly.days
        ])
        st.dataframe(df, use_container_width=True, hide_index=True)

    with st.expander("📋 Recent Events"):
        events = ctx.event_logger.get_recent_events(100) if ctx.event_logger else []
        if events:
            events_df = pd.DataFrame(events)
            st.dataframe(events_df[['timestamp', 'event_type', 'session_id', 'reason']].tail(20),
                         use_container_width=True)
        else:
            st.write("No events logged yet.")

# Achievements
with tab_achievements:
    unlocked = {a.key: a for a in ctx.achievements()}
    for rule in ctx.achievement_engine.catalog():
        achievement = unlocked.get(rule["key"])
        if achievement:
            st.success(f"🏆 **{rule['name']}** - {rule['description']}  \nUnlocked {achievement.unlocked_at}")
        else:
            st.write(f"🔒 **{rule['name']}** - {rule['description']}")

# Settings
with tab_settings:
    settings = ctx.settings
    with st.form("settings_form"):
        col1, col2 = st.columns(2)
        with col1:
            study_duration = st.number_input("Study duration (min)", min_value=0,
                                             value=settings.study_duration)
            break_duration = st.number_input("Break duration (min)", min_value=0,
                                             value=settings.break_duration)
            alert_frequency = st.number_input("Seconds between alerts", min_value=0,
                                              value=settings.alert_frequency)
            sound_enabled = st.checkbox("Alert sound", value=settings.sound_enabled)
        with col2:
            head_threshold = st.slider("Head forward threshold", 0.0, 1.0,
                                       value=float(settings.head_threshold), step=0.01)
            spine_threshold = st.slider("Spine lean threshold", 0.0, 1.0,
                                        value=float(settings.spine_threshold), step=0.01)
            flip_camera = st.checkbox("Mirror camera", value=settings.flip_camera)

        submitted = st.form_submit_button("💾 Save Settings")

    if submitted:
        ctx.update_settings({
            "study_duration": int(study_duration),
            "break_duration": int(break_duration),
            "alert_frequency": int(alert_frequency),
            "sound_enabled": sound_enabled,
            "head_threshold": float(head_threshold),
            "spine_threshold": float(spine_threshold),
            "flip_camera": flip_camera
        })
        st.success("✅ Saved! Restart the runner to apply to a running session.")

    if st.button("↩️ Reset to Defaults"):
        ctx.reset_settings()
        st.success("✅ Defaults restored")

    st.header("Data")
    st.download_button(
        "⬇️ Export History",
        data=history_to_json(ctx.history()),
        file_name=export_filename(ctx.today()),
        mime="application/json"
    )

    confirm = st.checkbox("I understand this deletes all sessions and achievements")
    if st.button("🗑️ Clear All Data", disabled=not confirm):
        if ctx.clear_data():
            st.success("✅ Cleared!")
        else:
            st.error("Failed to clear data")

st.divider()
st.caption("SitWell - Privacy-first posture tracking")
