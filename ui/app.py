"""
Screenshot Debugger - Viewer UI
===============================

Browser viewer for analysis documents: one screenshot at a time, with the
ML inference, post-processing and database records side by side and every
mismatch between them explained.

Architecture:
    - Each browser session owns one DebuggerService in st.session_state
    - Screenshots come from S3 via the service's ScreenshotStore
    - Storage defaults (bucket, region, endpoint) come from config.yaml

Usage:
    streamlit run ui/app.py

Environment:
    DEBUGGER_CONFIG  : path to config.yaml (optional)
    AWS_*            : default credential chain when none are pasted
"""

import json
from typing import List

import cv2
import numpy as np
import streamlit as st

from screenshot_debugger.config import Settings, load_config, setup_logging
from screenshot_debugger.ingest import AnalysisParseError
from screenshot_debugger.models import FilterCriteria, FrameResult, StageStatus
from screenshot_debugger.observability import (
    format_airtime,
    format_file_size,
    format_timestamp,
)
from screenshot_debugger.service import DebuggerService
from screenshot_debugger.storage import parse_export_credentials, to_rgb


# =============================================================================
# Page config
# =============================================================================

st.set_page_config(
    page_title="Screenshot Debugger",
    page_icon="🔍",
    layout="wide",
)

_BADGE_ICONS = {"error": "🔴", "warning": "🟠", "success": "🟢", "": "⚪"}
_SEVERITY_ALERTS = {"info": st.info, "warning": st.warning, "error": st.error}


# =============================================================================
# Per-session service
# =============================================================================

def get_service() -> DebuggerService:
    """One DebuggerService per browser session."""
    if "service" not in st.session_state:
        settings: Settings = load_config()
        setup_logging(settings)
        st.session_state.service = DebuggerService(settings)
        st.session_state.credentials_valid = False
    return st.session_state.service


# =============================================================================
# Rendering helpers
# =============================================================================

def render_timeline(
    results: List[FrameResult],
    position: int,
    max_markers: int,
    highlight: bool = True,
    size: tuple = (28, 1000),
) -> np.ndarray:
    """
    Timeline strip of the filtered view.

    Red markers are results with discrepancies, grey ones without; the
    selected result is outlined in white. Long views are bucketed so at
    most ``max_markers`` markers are drawn.
    """
    height, width = size
    strip = np.full((height, width, 3), 30, dtype=np.uint8)
    if not results:
        return strip

    buckets = min(len(results), max_markers)
    per_bucket = len(results) / buckets
    marker_w = max(1, width // buckets)

    for b in range(buckets):
        start = int(b * per_bucket)
        end = max(start + 1, int((b + 1) * per_bucket))
        flagged = highlight and any(r.has_discrepancy for r in results[start:end])
        color = (68, 68, 239) if flagged else (110, 110, 110)
        x = int(b * width / buckets)
        cv2.rectangle(strip, (x, 4), (x + marker_w - 1, height - 5), color, -1)

    current = min(int(position / per_bucket), buckets - 1)
    x = int(current * width / buckets)
    cv2.rectangle(strip, (x, 0), (x + marker_w - 1, height - 1), (255, 255, 255), 2)
    return strip


def render_inference(result: FrameResult) -> None:
    inference = result.inference
    if result.inference_status in (StageStatus.ABSENT, StageStatus.FAILED):
        st.caption(f"Error: {inference.error if inference else 'No data'}")
        return

    st.markdown(f"**Total Games:** {inference.game_count} | **Latency:** {inference.latency_ms:.2f} ms")
    if inference.game_count == 0:
        st.caption("No games detected")
        st.text(f"Uniform Frame: {'Yes' if inference.is_uniform_frame else 'No'}")
        return

    for i, game in enumerate(inference.detected_games, start=1):
        with st.container(border=True):
            st.markdown(f"**Game {i}: {game.label}**")
            st.text(f"Confidence: {game.confidence:.4f}")
            if game.bounding_box:
                st.text("Bounding Box: [" + ", ".join(f"{v:.1f}" for v in game.bounding_box) + "]")


def render_post_processed(result: FrameResult) -> None:
    post = result.post_processed
    if result.post_processing_status in (StageStatus.ABSENT, StageStatus.FAILED):
        st.caption(f"Error: {post.error if post else 'No data'}")
        return

    st.markdown(f"**Game Count:** {post.game_count} | **Event:** {post.event_type}")
    if post.game_count == 0:
        st.caption("No games after post-processing")
        st.text(f"Threshold Applied: {'Yes' if post.threshold_applied else 'No'}")

    for i, game in enumerate(post.games, start=1):
        with st.container(border=True):
            st.markdown(f"**Game {i}: {game.game_id}**")
            st.text(f"Session ID: {game.game_session_id}")

    if post.sliding_window_state:
        st.caption("Sliding Window")
        st.code(" → ".join(post.sliding_window_state), language=None)


def render_database(result: FrameResult) -> None:
    if not result.db_sessions:
        st.caption("No sessions in database")
    for session in result.db_sessions:
        with st.container(border=True):
            st.markdown(f"**{session.display_name}**")
            st.text(f"Session ID: {session.game_session_id}")
            st.text(f"Start: {format_timestamp(session.start_time)}")
            st.text(f"End: {format_timestamp(session.end_time)}")
            st.text(f"Airtime: {format_airtime(session.true_airtime_seconds)}")
            st.text(f"Matches Screenshot: {'Yes' if session.matches_screenshot else 'No'}")

    if result.db_game_counts:
        st.caption("Game Counts")
        for row in result.db_game_counts:
            st.text(f"{format_timestamp(row.timestamp)}  {row.game_identifier or '-'}  {row.game_session_id or '-'}")


# =============================================================================
# Sidebar
# =============================================================================

def render_sidebar(service: DebuggerService) -> None:
    st.header("AWS Credentials")
    pasted = st.text_area(
        "Paste export block",
        placeholder='export AWS_ACCESS_KEY_ID="..."\nexport AWS_SECRET_ACCESS_KEY="..."\nexport AWS_SESSION_TOKEN="..."',
        height=110,
    )
    bucket = st.text_input("Bucket", value=service.store.bucket or service.settings.storage.bucket)
    region = st.text_input("Region", value=service.store.region)

    if st.button("Validate", use_container_width=True):
        credentials = parse_export_credentials(pasted) if pasted.strip() else None
        if credentials is not None and not credentials.complete:
            st.error("Could not find AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY")
        else:
            service.store.configure(credentials, bucket=bucket, region=region)
            check = service.store.validate()
            st.session_state.credentials_valid = check.valid
            if check.valid:
                st.success(check.message)
            else:
                st.error(check.message)
                if check.details:
                    st.caption(check.details)
    elif st.session_state.credentials_valid:
        st.caption(f"✓ Connected to `{service.store.bucket}`")

    st.divider()
    st.header("Analysis File")
    upload = st.file_uploader("complete_analysis.json", type=["json"])
    if upload is not None:
        st.caption(f"Selected: {upload.name} ({format_file_size(upload.size)})")
        if st.button("Load", use_container_width=True):
            try:
                session = service.load_json(upload.getvalue())
            except AnalysisParseError as e:
                st.error(f"Could not load analysis: {e}")
            else:
                st.success(f"Loaded {len(session)} results")

    if service.session is None:
        return

    st.divider()
    st.header("Filters")
    criteria = FilterCriteria(
        only_discrepancies=st.checkbox("Only discrepancies", value=service.collection.criteria.only_discrepancies),
        ml_vs_post_only=st.checkbox("ML vs Post", value=service.collection.criteria.ml_vs_post_only),
        post_vs_db_only=st.checkbox("Post vs DB", value=service.collection.criteria.post_vs_db_only),
        missing_in_db_only=st.checkbox("Missing in DB", value=service.collection.criteria.missing_in_db_only),
        extra_in_db_only=st.checkbox("Extra in DB", value=service.collection.criteria.extra_in_db_only),
    )
    if criteria != service.collection.criteria:
        service.set_filter(criteria)
        st.rerun()
    if st.button("Clear Filters", use_container_width=True, disabled=criteria.is_empty):
        service.clear_filters()
        st.rerun()

    st.divider()
    st.header("Display")
    st.session_state.show_boxes = st.checkbox(
        "Show Bounding Boxes",
        value=st.session_state.get("show_boxes", service.settings.viewer.show_bounding_boxes),
    )

    st.divider()
    filename, text = service.export_csv()
    st.download_button("Export CSV", data=text, file_name=filename, mime="text/csv", use_container_width=True)


# =============================================================================
# Main UI
# =============================================================================

def main():
    service = get_service()

    with st.sidebar:
        render_sidebar(service)

    session = service.session
    if session is None:
        st.info("Validate AWS credentials and load a complete_analysis.json file to begin.")
        return

    # ── Session info ──────────────────────────────────────────────────────────
    meta = session.metadata
    stats = service.statistics()
    top = st.columns(5)
    top[0].metric("Session", meta.session_id)
    top[1].metric("Platform / Channel", f"{meta.platform} / {meta.channel}")
    top[2].metric("Results", stats.total)
    top[3].metric("With Discrepancies", stats.with_discrepancies)
    top[4].metric("Analyzed", format_timestamp(meta.analyzed_at))
    if stats.flag_drift:
        st.caption(f"⚠️ {stats.flag_drift} result(s) carry upstream flags that disagree with the recomputed ones")

    st.divider()

    # ── Navigation ────────────────────────────────────────────────────────────
    view = service.current_view()
    if view.fallback:
        st.warning("No results match the active filters, showing all results.")

    nav = st.columns([1, 1, 2, 1, 1, 2, 1])
    if nav[0].button("⏮ First", use_container_width=True):
        service.navigate("first")
        st.rerun()
    if nav[1].button("◀ Prev", use_container_width=True):
        service.navigate("previous")
        st.rerun()
    nav[2].markdown(f"**{view.position + 1 if view.result else 0} / {view.view_size}**")
    if nav[3].button("Next ▶", use_container_width=True):
        service.navigate("next")
        st.rerun()
    if nav[4].button("Last ⏭", use_container_width=True):
        service.navigate("last")
        st.rerun()
    jump_to = nav[5].number_input("Index", min_value=0, step=1, label_visibility="collapsed")
    if nav[6].button("Jump", use_container_width=True):
        if service.jump_to_index(int(jump_to)):
            st.rerun()
        else:
            st.error(f"Index {int(jump_to)} not found in current view")

    timeline = render_timeline(
        list(service.collection.view),
        view.position,
        max_markers=service.settings.viewer.timeline_max_markers,
        highlight=service.settings.viewer.highlight_discrepancies,
    )
    st.image(to_rgb(timeline), use_container_width=True)

    result = view.result
    if result is None:
        st.info("No results in this session.")
        return

    # ── Screenshot ────────────────────────────────────────────────────────────
    image = service.render_screenshot(result, show_boxes=st.session_state.get("show_boxes"))
    screenshot = result.screenshot
    caption = (
        f"#{result.index} · {format_timestamp(screenshot.timestamp if screenshot else None)}"
        f" · {(screenshot.filename if screenshot else None) or 'N/A'}"
    )
    st.image(to_rgb(image), caption=caption, use_container_width=True)

    # ── Discrepancies ─────────────────────────────────────────────────────────
    if view.discrepancies:
        for discrepancy in view.discrepancies:
            alert = _SEVERITY_ALERTS[discrepancy.severity.value]
            alert(f"**{discrepancy.title}**: {discrepancy.description}")
            with st.expander("Evidence"):
                st.code(json.dumps(discrepancy.model_dump(mode="json")["evidence"], indent=2), language="json")
    else:
        st.success("No discrepancies on this frame")

    # ── Comparison columns ────────────────────────────────────────────────────
    columns = st.columns(3)
    sections = (
        ("ML Inference", "inference", render_inference),
        ("Post-Processed", "post_processing", render_post_processed),
        ("Database", "database", render_database),
    )
    for column, (title, key, render) in zip(columns, sections):
        with column:
            badge = view.badges[key]
            st.subheader(f"{title} {_BADGE_ICONS[badge.tone]} {badge.text}")
            render(result)


if __name__ == "__main__":
    main()
