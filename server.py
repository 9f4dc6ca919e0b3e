from __future__ import annotations

from typing import Dict

from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
import numpy as np
import pandas as pd
import solara

from lobby import DEFAULT_PARTY_PRESSURES, LobbyGroup
from model import CongressModel
from network import build_trust_graph, most_trusted

PARTY_COLORS = {"Democrat": "#2563eb", "Republican": "#dc2626", "Independent": "#9333ea"}

DEFAULT_PARAMS: Dict[str, object] = dict(
    seed=42,
    composition="small",
    capture_probability=0.10,
    deal_probability=0.10,
    betrayal_probability=0.05,
    lobby_scale=1.0,
)


def build_model(params: Dict[str, object]) -> CongressModel:
    clean = dict(params)
    scale = float(clean.pop("lobby_scale", 1.0))
    clean["lobby_group"] = LobbyGroup(DEFAULT_PARTY_PRESSURES).scaled(scale)
    return CongressModel(**clean)


def make_line_figure(history: pd.DataFrame, columns: Dict[str, str], title: str) -> Figure:
    fig = Figure(figsize=(4.5, 3))
    FigureCanvasAgg(fig)
    ax = fig.add_subplot(1, 1, 1)
    plotted = False
    for column, color in columns.items():
        if column in history and not history.empty:
            ax.plot(history.index + 1, history[column], color=color, linewidth=2, label=column)
            plotted = True
    if plotted:
        ax.legend(loc="best", fontsize=8)
    else:
        ax.text(0.5, 0.5, "sin datos", ha="center", va="center")
    ax.set_title(title)
    ax.set_xlabel("round")
    ax.grid(True, linestyle="--", alpha=0.3)
    return fig


def make_reputation_figure(model: CongressModel) -> Figure:
    fig = Figure(figsize=(5.5, 4))
    FigureCanvasAgg(fig)
    ax = fig.add_subplot(1, 1, 1)
    xs, ys, colors, sizes = [], [], [], []
    for a in model.legislators:
        xs.append(a.reputation)
        ys.append(a.voter_approval)
        colors.append(PARTY_COLORS.get(a.party, "#6b7280"))
        trust = list(a.trust_levels.values())
        sizes.append(60 * float(np.clip(np.mean(trust) if trust else 0.5, 0.1, 1.0)))
    if xs:
        ax.scatter(xs, ys, c=colors, s=sizes, alpha=0.7, edgecolors="k", linewidths=0.3)
    ax.set_xlim(0, 1)
    ax.set_ylim(0, 1)
    ax.set_xlabel("reputation")
    ax.set_ylabel("voter approval")
    ax.set_title("Legisladores: color=partido, tamaño=confianza media")
    ax.grid(True, linestyle="--", alpha=0.2)
    return fig


def party_table(model: CongressModel) -> pd.DataFrame:
    result = model.last_result
    if result is None:
        return pd.DataFrame()
    rows = []
    for chamber, tally in (("House", result.house), ("Senate", result.senate)):
        for party, (yes, no) in tally.party_results.items():
            rows.append(dict(chamber=chamber, party=party, yes=yes, no=no))
    return pd.DataFrame(rows)


@solara.component
def InfoPanel(model: CongressModel):
    m = model.last_metrics or {}
    result = model.last_result
    children = [solara.Markdown(f"**Rondas:** {model.round_count} | **Legisladores:** {len(model.legislators)}")]
    if result is not None:
        verdict = "APROBADO" if result.passed else "RECHAZADO"
        children.append(solara.Markdown(f"**{result.bill.name}:** {verdict}"))
        children.append(
            solara.Markdown(
                f"House {result.house.total_yes}/{result.house.total_no} | "
                f"Senate {result.senate.total_yes}/{result.senate.total_no}"
            )
        )
        children.append(solara.Markdown(f"Acuerdos={len(result.deals)} | Traiciones={len(result.betrayals)}"))
    children.append(
        solara.Markdown(
            f"Reputación={m.get('reputation_mean', 0.0):.3f} | "
            f"Aprobación={m.get('approval_mean', 0.0):.3f} | "
            f"Confianza={m.get('trust_mean', 0.0):.3f}"
        )
    )
    return solara.Card(title="Métricas", children=children)


@solara.component
def SummaryPanel(model: CongressModel, history: pd.DataFrame):
    with solara.Card(title="Resumen"):
        cols = ["bill", "house_yes", "house_no", "senate_yes", "senate_no", "passed", "deals", "betrayals"]
        cols = [c for c in cols if c in history.columns]
        if cols and not history.empty:
            solara.DataFrame(history[cols].tail(8).reset_index(drop=True))
        parties = party_table(model)
        if not parties.empty:
            solara.Markdown("**Votos por partido (última ronda)**")
            solara.DataFrame(parties)
        top = most_trusted(build_trust_graph(model.legislators, min_trust=0.7))
        if top:
            solara.Markdown("**Más confiables**: " + ", ".join(f"{k} ({v:.2f})" for k, v in top.items()))


@solara.component
def Controls(params_state, reset_model):
    p = params_state.value

    def set_param(key, value):
        params_state.value = {**params_state.value, key: value}

    solara.Markdown("### Parámetros")
    solara.InputInt("Semilla", value=int(p["seed"]), on_value=lambda v: set_param("seed", int(v)))
    solara.Select(
        "Composición",
        value=p["composition"],
        values=[c for c in CongressModel.COMPOSITIONS if c != "empty"],
        on_value=lambda v: set_param("composition", v),
    )
    solara.SliderFloat(
        "Captura",
        value=float(p["capture_probability"]),
        min=0.0,
        max=1.0,
        step=0.01,
        on_value=lambda v: set_param("capture_probability", float(v)),
    )
    solara.SliderFloat(
        "Prob. acuerdo",
        value=float(p["deal_probability"]),
        min=0.0,
        max=1.0,
        step=0.01,
        on_value=lambda v: set_param("deal_probability", float(v)),
    )
    solara.SliderFloat(
        "Prob. traición",
        value=float(p["betrayal_probability"]),
        min=0.0,
        max=1.0,
        step=0.01,
        on_value=lambda v: set_param("betrayal_probability", float(v)),
    )
    solara.SliderFloat(
        "Escala lobby",
        value=float(p["lobby_scale"]),
        min=0.0,
        max=5.0,
        step=0.25,
        on_value=lambda v: set_param("lobby_scale", float(v)),
    )
    solara.Button("Aplicar y reiniciar", icon_name="refresh", on_click=reset_model, color="primary", text=True)


@solara.component
def Page():
    params_state = solara.use_reactive(dict(DEFAULT_PARAMS))
    sim_state = solara.use_reactive(dict(history=None, rounds=0))
    model_ref = solara.use_ref(None)

    def rebuild(params: Dict[str, object]):
        model = build_model(params)
        model_ref.current = model
        sim_state.value = dict(history=model.datacollector.get_model_vars_dataframe(), rounds=0)

    def ensure_model():
        if model_ref.current is None:
            rebuild(params_state.value)

    solara.use_effect(ensure_model, [])

    def reset_model():
        rebuild(params_state.value)

    def step_model(n: int = 1):
        model = model_ref.current
        if model is None:
            return
        done = 0
        for _ in range(n):
            if not model.running:
                break
            model.step()
            done += 1
        history = model.datacollector.get_model_vars_dataframe().reset_index(drop=True)
        sim_state.value = dict(history=history, rounds=sim_state.value["rounds"] + done)

    model = model_ref.current
    history = sim_state.value["history"]

    if model is None or history is None:
        solara.Text("Inicializando modelo...")
        return

    with solara.Column(gap="1.25rem"):
        solara.Markdown("# Congreso - Confianza y votaciones")
        with solara.Row(gap="1rem"):
            with solara.Column(gap="0.8rem", style={"minWidth": "320px"}):
                Controls(params_state=params_state, reset_model=reset_model)
                solara.Button("Votar siguiente proyecto", on_click=lambda: step_model(1))
                solara.Button("Sesión completa", on_click=lambda: step_model(len(model.docket)),
                              text=True, color="primary")
                solara.Button("Reset modelo", on_click=reset_model, icon_name="refresh", color="warning", text=True)
                solara.Markdown(f"**Rondas ejecutadas:** {sim_state.value['rounds']}")

            with solara.Column(gap="1rem", style={"alignItems": "stretch"}):
                InfoPanel(model=model)
                solara.FigureMatplotlib(make_reputation_figure(model))
                SummaryPanel(model=model, history=history)

        with solara.Tabs():
            with solara.Tab("Votos"):
                solara.FigureMatplotlib(
                    make_line_figure(history, {"house_yes": "#16a34a", "house_no": "#dc2626"}, "House")
                )
                solara.FigureMatplotlib(
                    make_line_figure(history, {"senate_yes": "#16a34a", "senate_no": "#dc2626"}, "Senate")
                )
            with solara.Tab("Confianza"):
                solara.FigureMatplotlib(
                    make_line_figure(history, {"trust_mean": "#059669", "reputation_mean": "#f59e0b"}, "Confianza / reputación")
                )
                solara.FigureMatplotlib(
                    make_line_figure(history, {"broken_ties": "#dc2626", "ally_edges": "#2563eb"}, "Lazos rotos / aliados")
                )


if __name__ == "__main__":
    print("Ejecuta: python -m solara run server:Page")
