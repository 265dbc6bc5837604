"""
Streamlit application for the vestake ledger workbench.

Interactive controls for a staking program and vesting schedules, a
deterministic simulation through the real ledgers, and charts of the
resulting pool, accumulator and vesting curves.

Run locally with: streamlit run streamlit_app.py
"""

import pandas as pd
import streamlit as st

from vestake.config.loader import load_config
from vestake.config.schema import Config
from vestake.engine.vesting import VestingSchedule, releasable_amount
from vestake.reporting.charts import (
    create_accumulator_chart,
    create_rewards_chart,
    create_staking_chart,
    create_vesting_chart,
)
from vestake.reporting.export import audit_to_frame, result_to_frame
from vestake.simulation.runner import SimulationRunner
from vestake.validation.sanity_checks import SanityChecker, validate_simulation_results

DAY = 86400

st.set_page_config(page_title="vestake Workbench", layout="wide", initial_sidebar_state="expanded")


@st.cache_data
def run_simulation(config_dict: dict, seed: int):
    result = SimulationRunner(Config.from_dict(config_dict)).run(random_seed=seed)
    return result


def sidebar_config():
    """Collect overrides from the sidebar on top of the packaged defaults."""
    config = load_config()
    data = config.to_dict()

    st.sidebar.header("Staking program")
    total_days = st.sidebar.number_input("Program length (days)", min_value=1, value=365)
    data['staking']['rewards_end'] = data['staking']['rewards_start'] + int(total_days) * DAY
    data['staking']['total_rewards'] = int(st.sidebar.number_input(
        "Total rewards", min_value=0, value=int(data['staking']['total_rewards']), step=1_000_000
    ))
    data['staking']['lock_period'] = int(st.sidebar.number_input(
        "Lock period (days)", min_value=0, value=data['staking']['lock_period'] // DAY
    )) * DAY
    data['staking']['minimum_stake'] = int(st.sidebar.number_input(
        "Minimum stake", min_value=0, value=int(data['staking']['minimum_stake'])
    ))

    st.sidebar.header("Stakers")
    sim = data['simulation']
    sim['horizon_seconds'] = int(total_days) * DAY
    sim['num_stakers'] = int(st.sidebar.slider("Population", 1, 500, sim['num_stakers']))
    sim['arrival_probability'] = st.sidebar.slider("Daily arrival probability", 0.0, 1.0, sim['arrival_probability'])
    sim['exit_probability'] = st.sidebar.slider("Daily exit probability", 0.0, 1.0, sim['exit_probability'])
    sim['claim_probability'] = st.sidebar.slider("Daily claim probability", 0.0, 1.0, sim['claim_probability'])
    seed = int(st.sidebar.number_input("Random seed", value=sim['random_seed']))
    return data, seed


def main():
    st.title("vestake Workbench")
    data, seed = sidebar_config()

    try:
        config = Config.from_dict(data)
    except ValueError as exc:
        st.error(f"Invalid configuration: {exc}")
        return

    for warning in SanityChecker(config).check_config_inputs():
        (st.error if warning.severity == "error" else st.warning)(warning.message)

    result = run_simulation(config.to_dict(), seed)
    final = result.final_metrics

    cols = st.columns(4)
    cols[0].metric("Final staked", f"{final['final_total_staked']:,}")
    cols[1].metric("Active stakers", final['final_active_stakers'])
    cols[2].metric("Rewards distributed", f"{final['rewards_distributed']:,}")
    cols[3].metric("Idle days", f"{final['idle_seconds'] / DAY:.1f}")

    left, right = st.columns(2)
    left.plotly_chart(create_staking_chart(result.snapshots), use_container_width=True)
    right.plotly_chart(create_rewards_chart(result.metrics_over_time), use_container_width=True)

    left, right = st.columns(2)
    left.plotly_chart(create_accumulator_chart(result.snapshots), use_container_width=True)
    schedules = {
        s.beneficiary: VestingSchedule.create(s.start, s.cliff_delay, s.duration, s.total_amount, s.cliff_allowance)
        for s in config.vesting.schedules
    }
    right.plotly_chart(create_vesting_chart(schedules), use_container_width=True)

    st.subheader("Releasable now")
    at_day = st.slider("Day", 0, int(config.simulation.horizon_seconds // DAY), 0)
    st.dataframe(pd.DataFrame([
        {"beneficiary": name, "releasable": releasable_amount(schedule, at_day * DAY)}
        for name, schedule in schedules.items()
    ]))

    warnings = validate_simulation_results(config, result.snapshots, result.metrics_over_time)
    errors = [w for w in warnings if w.severity == "error"]
    if result.invariant_violations or errors:
        st.error(f"{len(result.invariant_violations) + len(errors)} invariant violations")
        for message in result.invariant_violations[:20]:
            st.text(message)
    else:
        st.success("All ledger invariants held at every step")

    with st.expander("Per-step data"):
        st.dataframe(result_to_frame(result))
    with st.expander("Audit trail"):
        st.dataframe(audit_to_frame(result.audit.records if result.audit else []))


main()
