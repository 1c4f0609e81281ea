#!/usr/bin/env python3
"""Render the level curve or the quest route as an image."""

from __future__ import annotations

import argparse
from pathlib import Path
import sys

import matplotlib.pyplot as plt
import networkx as nx
from matplotlib.lines import Line2D

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stridequest.catalog import Catalog, load_catalog
from stridequest.config import EngineConfig
from stridequest.models.combat import total_armor
from stridequest.models.progression import IntensityTier

AREA_NODE_COLOUR = "#f0a500"
ENEMY_NODE_COLOUR = "#f5deb3"
ARMORED_NODE_COLOUR = "#98df8a"

XP_BAR_COLOUR = "#1f77b4"
MANA_CAP_COLOUR = "#d62728"
MANA_GAIN_COLOUR = "#9467bd"


def build_quest_graph(catalog: Catalog) -> nx.DiGraph:
    """Areas in unlock order, each followed by its enemies in fight order."""

    graph = nx.DiGraph()
    previous_area: str | None = None
    for area in sorted(catalog.quest_areas, key=lambda item: item.unlock_miles):
        area_node = f"area:{area.name}"
        graph.add_node(
            area_node,
            label=f"{area.name}\n{area.unlock_miles:g} mi",
            kind="area",
            layer=0,
        )
        if previous_area is not None:
            graph.add_edge(previous_area, area_node, kind="unlock")
        previous_area = area_node

        previous = area_node
        for depth, enemy in enumerate(area.enemies, start=1):
            enemy_node = f"enemy:{enemy.key}"
            graph.add_node(
                enemy_node,
                label=f"{enemy.name}\nHP {enemy.hp} / AR {total_armor(enemy.armor)}",
                kind="enemy",
                armored=total_armor(enemy.armor) > 0,
                layer=depth,
            )
            graph.add_edge(previous, enemy_node, kind="fight")
            previous = enemy_node
    return graph


def render_quest_route(output_path: Path, catalog: Catalog, dpi: int, size: float) -> None:
    graph = build_quest_graph(catalog)
    pos = nx.multipartite_layout(graph, subset_key="layer", align="horizontal")

    plt.figure(figsize=(size, size * 0.6), dpi=dpi)
    node_colours = []
    for node in graph.nodes:
        data = graph.nodes[node]
        if data.get("kind") == "area":
            node_colours.append(AREA_NODE_COLOUR)
        elif data.get("armored"):
            node_colours.append(ARMORED_NODE_COLOUR)
        else:
            node_colours.append(ENEMY_NODE_COLOUR)

    nx.draw_networkx_nodes(
        graph, pos, node_color=node_colours, node_size=900, edgecolors="#333333", linewidths=0.5
    )
    labels = {node: graph.nodes[node].get("label", node) for node in graph.nodes}
    nx.draw_networkx_labels(graph, pos, labels=labels, font_size=6)
    unlock_edges = [edge for edge in graph.edges if graph.edges[edge]["kind"] == "unlock"]
    fight_edges = [edge for edge in graph.edges if graph.edges[edge]["kind"] == "fight"]
    nx.draw_networkx_edges(graph, pos, edgelist=unlock_edges, style="dashed", arrows=True)
    nx.draw_networkx_edges(graph, pos, edgelist=fight_edges, arrows=True, alpha=0.7)

    legend_handles = [
        Line2D([], [], marker="o", linestyle="", color=AREA_NODE_COLOUR, label="Quest area"),
        Line2D([], [], marker="o", linestyle="", color=ARMORED_NODE_COLOUR, label="Armored enemy"),
        Line2D([], [], marker="o", linestyle="", color=ENEMY_NODE_COLOUR, label="Unarmored enemy"),
    ]
    plt.legend(handles=legend_handles, loc="upper left", frameon=False, fontsize=8)
    plt.axis("off")
    plt.tight_layout()

    output_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_path, bbox_inches="tight")
    plt.close()


def render_level_curve(output_path: Path, catalog: Catalog, dpi: int, size: float) -> None:
    rows = catalog.level_table.rows
    levels = [row.level for row in rows]

    fig, (xp_ax, tier_ax) = plt.subplots(1, 2, figsize=(size, size * 0.4), dpi=dpi)

    xp_ax.bar(levels, [row.xp_to_reach_level for row in rows], color=XP_BAR_COLOUR, alpha=0.6)
    xp_ax.set_xlabel("Level")
    xp_ax.set_ylabel("XP to reach level")
    mana_ax = xp_ax.twinx()
    mana_ax.plot(levels, [row.mana_cap for row in rows], color=MANA_CAP_COLOUR, marker="o")
    mana_ax.plot(
        levels, [row.mana_per_workout for row in rows], color=MANA_GAIN_COLOUR, marker="s"
    )
    mana_ax.set_ylabel("Mana")
    xp_ax.set_title("Level table")
    xp_ax.legend(
        handles=[
            Line2D([], [], color=XP_BAR_COLOUR, linewidth=6, alpha=0.6, label="XP"),
            Line2D([], [], color=MANA_CAP_COLOUR, marker="o", label="Mana cap"),
            Line2D([], [], color=MANA_GAIN_COLOUR, marker="s", label="Mana per workout"),
        ],
        loc="upper left",
        frameon=False,
        fontsize=8,
    )

    tiers = list(IntensityTier)
    tier_ax.step(
        [tier.minimum_count for tier in tiers],
        [tier.multiplier for tier in tiers],
        where="post",
        color=MANA_CAP_COLOUR,
    )
    for tier in tiers:
        tier_ax.annotate(
            tier.display_name,
            (tier.minimum_count, tier.multiplier),
            textcoords="offset points",
            xytext=(2, 4),
            fontsize=7,
        )
    tier_ax.set_xlabel("Efforts in the last 7 days")
    tier_ax.set_ylabel("Mana multiplier")
    tier_ax.set_title("Intensity tiers")

    fig.tight_layout()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, bbox_inches="tight")
    plt.close(fig)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("img/progression.png"),
        help="Where to write the rendered image.",
    )
    parser.add_argument("--dpi", type=int, default=150, help="Rendering DPI.")
    parser.add_argument("--size", type=float, default=14.0, help="Figure width in inches.")
    parser.add_argument(
        "--mode",
        choices=("levels", "quests"),
        default="levels",
        help="Plot the level table and intensity tiers, or the quest route graph.",
    )
    parser.add_argument(
        "--catalog",
        type=Path,
        default=None,
        help="Optional catalog TOML override (defaults to STRIDEQUEST_CATALOG).",
    )

    args = parser.parse_args()
    config = EngineConfig.from_env()
    catalog = load_catalog(args.catalog or config.catalog_path)
    if args.mode == "quests":
        render_quest_route(args.output, catalog, dpi=args.dpi, size=args.size)
    else:
        render_level_curve(args.output, catalog, dpi=args.dpi, size=args.size)


if __name__ == "__main__":
    main()
