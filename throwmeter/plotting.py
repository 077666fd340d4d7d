from io import BytesIO

import matplotlib.pyplot as plt
import numpy as np


def plot_flight(snapshot, analysis, dpi=150):
    """PNG snapshot of a detected flight: residual |a| with threshold, and the ZUPT trajectory."""
    t = snapshot.world_accel.t
    window, traj = analysis.window, analysis.trajectory
    residual = np.asarray(window.residual)
    t_span = t[traj.span_start:traj.span_end + 1]

    fig, (ax_res, ax_traj) = plt.subplots(2, 1, figsize=(7, 5.5), sharex=True)

    ax_res.plot(t, residual, label="|a| residual (m/s²)", linewidth=1.8)
    ax_res.axhline(window.threshold_mps2, linestyle=":", linewidth=1, color="red",
                   label=f"threshold {window.threshold_mps2:.2f}")
    ax_res.axvspan(window.t0, window.t1, alpha=0.2, color="green")
    for t_mark, label in ((window.t0, "  Release"), (window.t1, "  Catch")):
        ax_res.axvline(t_mark, linestyle="--", linewidth=1)
        ax_res.text(t_mark, window.threshold_mps2, label, va="bottom", fontsize=6)
    ax_res.set_ylabel("Accel")
    ax_res.legend(loc="upper left", markerscale=0.8, frameon=False)

    ax_traj.plot(t_span, traj.velocity, label="v_z (m/s)", linewidth=1.8)
    ax_traj.plot(t_span, traj.position, label="z (m)", linewidth=1.8)
    ax_traj.axvspan(window.t0, window.t1, alpha=0.2, color="green")
    ax_traj.set_xlabel("Time (s)")
    ax_traj.legend(loc="upper left", markerscale=0.8, frameon=False)

    title_bits = [f"TOF ≈ {window.duration_s * 1000:.0f} ms", f"flips {analysis.flips}"]
    for e in analysis.estimates:
        if e.available:
            title_bits.append(f"{e.method.value} {e.height_m * 100:.1f} cm")
    ax_res.set_title(" | ".join(title_bits), fontsize=8)

    buf = BytesIO()
    fig.tight_layout()
    fig.savefig(buf, format="png", dpi=dpi)
    plt.close(fig)
    return buf.getvalue()
