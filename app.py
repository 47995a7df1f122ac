import logging
import os

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from flask import Flask, render_template, request

from mmwsim.analysis import (build_dataframe, compute_statistics, flow_dataframe,
                             generate_report, plot_throughput_over_slots, plot_tx_bits_heatmap)
from mmwsim.config import BF_ALGORITHMS, MCS_POLICIES, TRAFFIC_TYPES, default_params
from mmwsim.errors import SchedulerError
from mmwsim.simulator import run_scenario

logging.basicConfig(level=os.environ.get("MMWSIM_LOG_LEVEL", "INFO"),
                    format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# Flask app and folder for the generated figures
app = Flask(__name__)
images_dir = os.path.join(app.static_folder, "images")
os.makedirs(images_dir, exist_ok=True)


def read_form(form) -> dict:
    """Simulation parameters from the submitted form; absent fields keep their defaults."""
    casts = {
        "n_users": int,
        "n_slots": int,
        "slot_ms": float,
        "bandwidth_hz": float,
        "target_per": float,
        "acceptance_threshold": float,
        "payload_bits": int,
        "period_ms": float,
        "lambda_per_ms": float,
        "deadline_ms": float,
        "seed": int,
    }
    params = {key: cast(form[key]) for key, cast in casts.items() if form.get(key)}
    for key in ("bf_algorithm", "mcs_policy", "traffic_type"):
        if form.get(key):
            params[key] = form[key]
    params["aggregate_flows"] = form.get("aggregate_flows") == "on"
    return params


@app.route("/", methods=["GET", "POST"])
def index():
    error = None

    if request.method == "POST":
        # --- 1) Run the scenario ---
        try:
            res = run_scenario(read_form(request.form))
        except (SchedulerError, ValueError) as exc:
            logger.warning("rejected form input: %s", exc)
            error = str(exc)
        else:
            # --- 2) Summary tables ---
            report = generate_report(res)
            df = build_dataframe(res)
            stats_html = compute_statistics(df).round(1).reset_index().to_html(
                classes="table table-sm", index=False)
            flows_html = flow_dataframe(res.flows).to_html(classes="table table-sm", index=False)

            # --- 3) Figures ---
            fig = plot_throughput_over_slots(df)
            fig.savefig(os.path.join(images_dir, "throughput.png"))
            plt.close(fig)

            fig = plot_tx_bits_heatmap(res)
            fig.savefig(os.path.join(images_dir, "tx_bits_heatmap.png"))
            plt.close(fig)

            return render_template(
                "results.html",
                report=report,
                stats_table=stats_html,
                flows_table=flows_html,
                throughput_image="images/throughput.png",
                heatmap_image="images/tx_bits_heatmap.png",
            )

    # GET (or rejected input): show the form
    return render_template(
        "index.html",
        error=error,
        defaults=default_params,
        algorithms=BF_ALGORITHMS,
        policies=MCS_POLICIES,
        traffic_types=TRAFFIC_TYPES,
    )


if __name__ == "__main__":
    app.run(debug=True)
