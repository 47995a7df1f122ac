import logging

import matplotlib.pyplot as plt
import pandas as pd

from mmwsim.simulator import SimulationResult

logger = logging.getLogger(__name__)


def build_dataframe(result: SimulationResult) -> pd.DataFrame:
    """One row per (slot, user) with bits, throughput and capacity."""
    rows = []
    for rec in result.records:
        for i, bits in enumerate(rec.tx_bits):
            rows.append({
                'slot': rec.slot,
                'user': i + 1,
                'tx_bits': bits,
                'throughput_bps': rec.throughput[i],
                'capacity_bps': rec.capacity[i],
            })
    return pd.DataFrame(rows, columns=['slot', 'user', 'tx_bits', 'throughput_bps', 'capacity_bps'])


def flow_dataframe(store) -> pd.DataFrame:
    rows = [{
        'user': user,
        'flow': idx,
        'arrival': flow.arrival,
        'deadline': flow.deadline,
        'payload_bits': flow.payload,
        'remaining_bits': flow.remaining,
        'th_bps': flow.th,
        'success': flow.success,
        'failed': flow.failed,
    } for user, idx, flow in store]
    return pd.DataFrame(rows, columns=['user', 'flow', 'arrival', 'deadline', 'payload_bits',
                                       'remaining_bits', 'th_bps', 'success', 'failed'])


def compute_statistics(df: pd.DataFrame) -> pd.DataFrame:
    """Per-user totals and means over the slots where the user was served."""
    served = df[df['tx_bits'] > 0]
    stats = df.groupby('user').agg(
        total_bits=('tx_bits', 'sum'),
        slots_served=('tx_bits', lambda x: int((x > 0).sum())),
    )
    stats['mean_throughput_bps'] = served.groupby('user')['throughput_bps'].mean()
    return stats.fillna({'mean_throughput_bps': 0.0})


def generate_report(result: SimulationResult) -> dict:
    """
    Summary of flow outcomes per user and overall; also written to the log.
    """
    flows = flow_dataframe(result.flows)
    per_user = {}
    for user in result.flows.users():
        sub = flows[flows['user'] == user]
        per_user[user] = {
            'flows': int(len(sub)),
            'success': int(sub['success'].sum()),
            'failed': int(sub['failed'].sum()),
        }
        logger.info("user %d: %d flows, %d delivered, %d failed",
                    user, per_user[user]['flows'], per_user[user]['success'], per_user[user]['failed'])

    total = int(len(flows))
    success = int(flows['success'].sum())
    active_slots = sum(1 for r in result.records if any(r.tx_bits))
    report = {
        'flows': total,
        'success': success,
        'failed': total - success,
        'success_pct': round(success / total * 100, 1) if total else 0.0,
        'slots': len(result.records),
        'active_slots': active_slots,
        'total_bits': int(sum(sum(r.tx_bits) for r in result.records)),
        'per_user': per_user,
    }
    logger.info("report: %d/%d flows delivered (%.1f%%) over %d slots",
                success, total, report['success_pct'], report['slots'])
    return report


def plot_throughput_over_slots(df: pd.DataFrame) -> plt.Figure:
    fig, ax = plt.subplots(figsize=(8, 4))
    for user, sub in df.groupby('user'):
        ax.plot(sub['slot'], sub['throughput_bps'] / 1e6, label=f"user {user}", linewidth=1)
    ax.set_title('Throughput per slot')
    ax.set_xlabel('Slot index')
    ax.set_ylabel('Throughput (Mbps)')
    ax.legend(fontsize='small')
    fig.tight_layout()
    return fig


def plot_tx_bits_heatmap(result: SimulationResult) -> plt.Figure:
    mat = result.tx_bits_matrix().T
    fig, ax = plt.subplots(figsize=(8, 4))
    im = ax.imshow(mat, aspect='auto', origin='lower', interpolation='nearest')
    fig.colorbar(im, ax=ax, label='bits delivered')
    ax.set_title('Delivered bits per user and slot')
    ax.set_xlabel('Slot index')
    ax.set_ylabel('User')
    fig.tight_layout()
    return fig
