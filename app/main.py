"""
Streamlit Frontend for meterlog

This is the user interface for logging meter readings and looking at
usage per month and per year.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Explicit save at every step
3. Clear error messages in simple language
4. Visual feedback for all operations
5. No hidden actions

Untracked meters are shown as N/A, never as zero usage.
"""

import asyncio
import logging
from datetime import date
from typing import Optional

import streamlit as st

from meterlog.audit import create_correlation_id
from meterlog.config import validate_all_settings
from meterlog.models.reading import House, Reading, ReadingInput, StartNumbers
from meterlog.models.summary import UsageFields
from meterlog.orchestrator import (
    AppComponents,
    HouseAccessError,
    ReadingRejectedError,
    create_app_components,
)
from meterlog.services.export import ExportError, ExportNotFoundError
from meterlog.services.storage import StorageError
from meterlog.summary import format_change, format_month, format_usage


# Page configuration
st.set_page_config(
    page_title="Meter Log",
    page_icon="⚡",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    components = create_app_components()
    logging.basicConfig(level=components.settings.app.log_level)
    return components


def usage_row(label: str, summary: UsageFields) -> dict:
    """One table row of usage figures."""
    return {
        "Period": label,
        "Electricity high (kWh)": format_usage(summary.electricity_high),
        "Electricity low (kWh)": format_usage(
            summary.electricity_low, summary.electricity_low_tracked
        ),
        "Electricity total (kWh)": format_usage(summary.electricity_total),
        "Gas (m³)": format_usage(summary.gas, decimals=1),
        "Water (m³)": format_usage(summary.water, summary.water_tracked, decimals=1),
    }


def select_house(components: AppComponents, user_id: str, key: str) -> Optional[House]:
    """House picker, preselecting the default house."""
    houses = run_async(components.houses.list_houses(user_id))
    if not houses:
        st.info("🏠 Add a house first on the Houses page.")
        return None

    default = run_async(components.houses.get_default_house(user_id))
    index = next((i for i, h in enumerate(houses) if default and h.id == default.id), 0)
    return st.selectbox(
        "House",
        options=houses,
        index=index,
        format_func=lambda h: f"{h.name} ⭐" if h.is_default else h.name,
        key=key,
    )


def main():
    """Main application entry point."""
    components = get_components()
    user_id = components.settings.app.user_id

    # Sidebar navigation
    st.sidebar.title("⚡ Meter Log")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        [
            "🏠 Houses",
            "📝 Readings",
            "📊 House Statistics",
            "📈 Overall Statistics",
            "💾 Export",
            "⚙️ Settings",
        ],
        index=1,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **How to use:**
        1. Add your house
        2. Log the meter values regularly
        3. Check your usage per month and year
        """
    )

    # Route to appropriate page
    if page == "🏠 Houses":
        render_houses_page(components, user_id)
    elif page == "📝 Readings":
        render_readings_page(components, user_id)
    elif page == "📊 House Statistics":
        render_house_statistics_page(components, user_id)
    elif page == "📈 Overall Statistics":
        render_overall_statistics_page(components, user_id)
    elif page == "💾 Export":
        render_export_page(components, user_id)
    elif page == "⚙️ Settings":
        render_settings_page(components, user_id)


def render_houses_page(components: AppComponents, user_id: str):
    """Create, rename, delete houses and pick the default one."""
    st.title("🏠 Houses")

    with st.form("new_house", clear_on_submit=True):
        name = st.text_input("House name", max_chars=100)
        make_default = st.checkbox("Use as default house")
        if st.form_submit_button("➕ Add House", type="primary") and name.strip():
            house = run_async(components.houses.create_house(
                name=name,
                user_id=user_id,
                is_default=make_default,
                correlation_id=create_correlation_id(),
            ))
            st.success(f"✅ Added {house.name}")

    st.markdown("---")

    houses = run_async(components.houses.list_houses(user_id))
    if not houses:
        st.info("No houses yet.")
        return

    for house in houses:
        with st.expander(f"{house.name}{' ⭐' if house.is_default else ''}"):
            new_name = st.text_input("Name", value=house.name, key=f"name_{house.id}")
            col1, col2, col3 = st.columns(3)

            with col1:
                if st.button("💾 Rename", key=f"rename_{house.id}") and new_name.strip():
                    run_async(components.houses.rename_house(house.id, new_name, user_id))
                    st.rerun()
            with col2:
                if not house.is_default and st.button("⭐ Make Default", key=f"default_{house.id}"):
                    run_async(components.houses.set_default_house(house.id, user_id))
                    st.rerun()
            with col3:
                if st.button("🗑️ Delete", key=f"delete_{house.id}"):
                    try:
                        orphaned = run_async(components.houses.delete_house(house.id, user_id))
                    except HouseAccessError as e:
                        st.error(str(e))
                    else:
                        if orphaned:
                            st.warning(f"⚠️ {orphaned} readings of this house were kept")
                        st.rerun()


def render_readings_page(components: AppComponents, user_id: str):
    """Entry form plus the list of a house's readings."""
    st.title("📝 Readings")

    house = select_house(components, user_id, key="readings_house")
    if house is None:
        return

    last = run_async(components.readings.last_reading(user_id, house.id))
    if last is None:
        # First reading of a house starts from the saved initial values
        start: StartNumbers = components.preferences.load()
        prefill = {
            "electricity_high": start.electricity_high,
            "electricity_low": start.electricity_low,
            "gas": start.gas,
            "water": start.water,
        }
    else:
        prefill = {
            "electricity_high": last.electricity_high,
            "electricity_low": last.electricity_low or 0.0,
            "gas": last.gas,
            "water": last.water or 0.0,
        }

    with st.form("new_reading"):
        reading_date = st.date_input("Date", value=date.today())
        col1, col2 = st.columns(2)
        with col1:
            high = st.number_input("Electricity high (kWh)", min_value=0.0, value=prefill["electricity_high"])
            track_low = st.checkbox("Track low tariff", value=last is None or last.electricity_low is not None)
            low = st.number_input("Electricity low (kWh)", min_value=0.0, value=prefill["electricity_low"])
        with col2:
            gas = st.number_input("Gas (m³)", min_value=0.0, value=prefill["gas"])
            track_water = st.checkbox("Track water", value=last is None or last.water is not None)
            water = st.number_input("Water (m³)", min_value=0.0, value=prefill["water"])

        if st.form_submit_button("💾 Save Reading", type="primary"):
            reading = ReadingInput(
                date=reading_date,
                electricity_high=high,
                electricity_low=low if track_low else None,
                gas=gas,
                water=water if track_water else None,
                house_id=house.id,
            )
            try:
                saved, result = run_async(components.readings.add_reading(
                    reading, user_id, correlation_id=create_correlation_id()
                ))
            except ReadingRejectedError as e:
                st.error(str(e))
            except StorageError as e:
                st.error(f"Could not save: {e}")
            else:
                st.success(f"✅ Reading for {saved.date} saved")
                for warning in result.warnings:
                    st.warning(f"⚠️ {warning}")

    st.markdown("---")
    st.markdown("### History")

    readings = run_async(components.readings.list_readings(user_id, house.id))
    if not readings:
        st.info("No readings yet.")
        return

    for reading in reversed(readings):
        with st.expander(reading.date):
            st.markdown(
                f"**Electricity high:** {format_usage(reading.electricity_high)} kWh  \n"
                f"**Electricity low:** {format_usage(reading.electricity_low, reading.electricity_low is not None)}  \n"
                f"**Gas:** {format_usage(reading.gas, decimals=1)} m³  \n"
                f"**Water:** {format_usage(reading.water, reading.water is not None, decimals=1)}"
            )
            render_edit_reading_form(components, user_id, reading)
            if st.button("🗑️ Delete", key=f"delete_reading_{reading.id}"):
                run_async(components.readings.delete_reading(reading.id, user_id))
                st.rerun()


def render_edit_reading_form(components: AppComponents, user_id: str, reading: Reading):
    """Edit form for one stored reading."""
    with st.form(f"edit_reading_{reading.id}"):
        edit_date = st.date_input("Date", value=date.fromisoformat(reading.date), key=f"edit_date_{reading.id}")
        col1, col2 = st.columns(2)
        with col1:
            high = st.number_input("Electricity high (kWh)", min_value=0.0, value=reading.electricity_high, key=f"edit_high_{reading.id}")
            track_low = st.checkbox("Track low tariff", value=reading.electricity_low is not None, key=f"edit_track_low_{reading.id}")
            low = st.number_input("Electricity low (kWh)", min_value=0.0, value=reading.electricity_low or 0.0, key=f"edit_low_{reading.id}")
        with col2:
            gas = st.number_input("Gas (m³)", min_value=0.0, value=reading.gas, key=f"edit_gas_{reading.id}")
            track_water = st.checkbox("Track water", value=reading.water is not None, key=f"edit_track_water_{reading.id}")
            water = st.number_input("Water (m³)", min_value=0.0, value=reading.water or 0.0, key=f"edit_water_{reading.id}")

        if st.form_submit_button("✏️ Update Reading"):
            changes = ReadingInput(
                date=edit_date,
                electricity_high=high,
                electricity_low=low if track_low else None,
                gas=gas,
                water=water if track_water else None,
                house_id=reading.house_id,
            )
            try:
                updated, result = run_async(components.readings.update_reading(
                    reading.id, changes, user_id, correlation_id=create_correlation_id()
                ))
            except ReadingRejectedError as e:
                st.error(str(e))
            except StorageError as e:
                st.error(f"Could not update: {e}")
            else:
                st.success(f"✅ Reading for {updated.date} updated")
                for warning in result.warnings:
                    st.warning(f"⚠️ {warning}")


def render_house_statistics_page(components: AppComponents, user_id: str):
    """Yearly, monthly and month-over-year usage of one house."""
    st.title("📊 House Statistics")

    house = select_house(components, user_id, key="stats_house")
    if house is None:
        return

    snapshot = run_async(components.statistics.house_statistics(house.id, user_id))
    if not snapshot.yearly:
        st.info("At least two readings are needed to compute usage.")
        return

    st.markdown("### Per Year")
    st.dataframe([usage_row(y.year, y) for y in snapshot.yearly], hide_index=True)

    st.markdown("### Per Month")
    st.dataframe(
        [usage_row(format_month(m.month), m) for m in reversed(snapshot.monthly)],
        hide_index=True,
    )

    st.markdown("### Same Month, Other Years")
    for comparison in snapshot.comparisons:
        if len(comparison.entries) < 2:
            continue
        rows = []
        for entry in comparison.entries:
            row = usage_row(format_month(entry.summary.month), entry.summary)
            row["Δ Electricity"] = format_change(entry.change.electricity_total if entry.change else None)
            row["Δ Gas"] = format_change(entry.change.gas if entry.change else None)
            row["Δ Water"] = format_change(entry.change.water if entry.change else None)
            rows.append(row)
        st.dataframe(rows, hide_index=True)


def render_overall_statistics_page(components: AppComponents, user_id: str):
    """Yearly usage summed over all houses."""
    st.title("📈 Overall Statistics")

    snapshot = run_async(components.statistics.overall_statistics(user_id))
    if not snapshot.combined:
        st.info("At least two readings in one house are needed to compute usage.")
        return

    st.markdown("### All Houses")
    st.dataframe([usage_row(y.year, y) for y in snapshot.combined], hide_index=True)

    houses = {h.id: h.name for h in run_async(components.houses.list_houses(user_id))}
    for house_id, yearly in snapshot.yearly_by_house.items():
        if not yearly:
            continue
        st.markdown(f"### {houses.get(house_id, 'Deleted house')}")
        st.dataframe([usage_row(y.year, y) for y in yearly], hide_index=True)


def render_export_page(components: AppComponents, user_id: str):
    """Overwrite and download the CSV export."""
    st.title("💾 Export")
    st.markdown(f"Export file: `{components.export.export_path}`")

    if st.button("🔄 Overwrite Export File"):
        try:
            count = run_async(components.export.overwrite_export(user_id))
        except ExportError as e:
            st.error(str(e))
        else:
            st.success(f"✅ Wrote {count} readings")

    filename, content = run_async(components.export.download_all(user_id))
    st.download_button("⬇️ Download All Readings", content, file_name=filename, mime="text/csv")

    try:
        filename, content = components.export.download_current()
    except ExportNotFoundError:
        st.info("No export file has been written yet.")
    else:
        st.download_button("⬇️ Download Export File", content, file_name=filename, mime="text/csv")


def render_settings_page(components: AppComponents, user_id: str):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Initial Meter Values")
    start = components.preferences.load()
    with st.form("start_numbers"):
        high = st.number_input("Electricity high (kWh)", min_value=0.0, value=start.electricity_high)
        low = st.number_input("Electricity low (kWh)", min_value=0.0, value=start.electricity_low)
        gas = st.number_input("Gas (m³)", min_value=0.0, value=start.gas)
        water = st.number_input("Water (m³)", min_value=0.0, value=start.water)
        if st.form_submit_button("💾 Save"):
            run_async(components.preferences.save(
                StartNumbers(electricity_high=high, electricity_low=low, gas=gas, water=water),
                user_id,
            ))
            st.success("✅ Saved")

    st.markdown("---")
    st.markdown("### Connection Status")

    status = validate_all_settings()
    services = [
        ("Application", "app"),
        ("Google Sheets (Storage)", "google_sheets"),
    ]
    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown(f"**Storage backend:** {components.settings.app.storage_backend}")
    st.markdown(f"**Month attribution:** {components.statistics.attribution.value}")

    st.markdown("---")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
