import matplotlib.pyplot as plt
import pytest

from mmwsim.analysis import (build_dataframe, compute_statistics, flow_dataframe,
                             generate_report, plot_throughput_over_slots, plot_tx_bits_heatmap)
from mmwsim.channel import TableOracle
from mmwsim.simulator import run_scenario
from mmwsim.traffic import FlowStore

from conftest import make_flow, make_table


@pytest.fixture
def result():
    store = FlowStore(2, {
        1: [make_flow(1, 5, 1000), make_flow(3, 6, 3000)],
        2: [make_flow(8, 9, 500)],
    })
    # user 2 arrives too late to be served before the horizon
    return run_scenario({'n_users': 2, 'n_slots': 8}, flows=store,
                        oracle=TableOracle(20.0), table=make_table(2e6))


def test_dataframe_has_one_row_per_slot_and_user(result):
    df = build_dataframe(result)
    assert len(df) == 7 * 2
    assert df['tx_bits'].sum() == 4000
    assert set(df['user']) == {1, 2}


def test_statistics_per_user(result):
    stats = compute_statistics(build_dataframe(result))
    assert stats.loc[1, 'total_bits'] == 4000
    assert stats.loc[1, 'slots_served'] == 3
    assert stats.loc[2, 'total_bits'] == 0
    assert stats.loc[2, 'mean_throughput_bps'] == 0.0


def test_flow_table_and_report(result):
    flows = flow_dataframe(result.flows)
    assert list(flows['success']) == [True, True, False]
    report = generate_report(result)
    assert report['flows'] == 3
    assert report['success'] == 2
    assert report['failed'] == 1
    assert report['per_user'][2] == {'flows': 1, 'success': 0, 'failed': 1}
    assert report['total_bits'] == 4000
    assert report['active_slots'] == 3


def test_figures_are_built(result):
    fig = plot_throughput_over_slots(build_dataframe(result))
    assert fig.axes[0].get_xlabel() == 'Slot index'
    plt.close(fig)
    fig = plot_tx_bits_heatmap(result)
    assert fig.axes[0].get_ylabel() == 'User'
    plt.close(fig)
