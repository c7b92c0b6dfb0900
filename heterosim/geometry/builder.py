# heterosim/geometry/builder.py
"""
1D grid builder for layered heterostructures.

- SI units throughout.
- Constructs a node-centered 1D mesh over a z-stack of layers.
- Every cell carries a region tag; boundary nodes carry a boundary-region tag:
    0 = left outer contact, 1 = right outer contact,
    2, 3, ... = inner interfaces in stack order.
- Emits control volumes split by region (for node/region reaction terms).

Public API (stable):
    LayerSpec
    StackSpec
    MeshSpec
    Grid1D

    build_grid(stack: StackSpec, mesh: MeshSpec) -> Grid1D
    list_interfaces(grid: Grid1D) -> np.ndarray

Notes
-----
- No physics here: only geometry + region bookkeeping.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Sequence
import numpy as np

__all__ = [
    "LayerSpec", "StackSpec", "MeshSpec", "Grid1D",
    "build_grid", "list_interfaces", "uniform_grid",
    "BREGION_LEFT", "BREGION_RIGHT",
]

BREGION_LEFT = 0
BREGION_RIGHT = 1

# ---------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------


@dataclass(slots=True)
class LayerSpec:
    """
    One layer in the 1D stack.

    Attributes
    ----------
    name : str
        Human-readable label.
    thickness : float
        Layer thickness [m], must be > 0.
    region : Optional[int]
        Region tag (0-based). Defaults to the layer's position in the stack;
        layers may share a tag.
    """
    name: str
    thickness: float
    region: Optional[int] = None


@dataclass(slots=True)
class StackSpec:
    """
    Full stack definition.

    layers : from z=0 (left contact) to z=L (right contact).
    """
    layers: Sequence[LayerSpec]


@dataclass(slots=True)
class MeshSpec:
    """
    Mesh controls for node-centered 1D grid.

    Choose one of:
      - N_total: total nodes for whole stack (>= 3).
      - hz_max:  max node spacing [m] (applied per layer).
      - per_layer_N: nodes per layer (len == len(layers)).

    Optionally grade near interfaces using geometric stretching.
    """
    N_total: Optional[int] = None
    hz_max: Optional[float] = None
    per_layer_N: Optional[Sequence[int]] = None

    # Interface refinement (stretching ratio r >= 1):
    refine_interfaces: bool = False
    stretch_ratio: float = 1.0  # r=1 means uniform
    stretch_cells: int = 0      # number of cells each side of an interface to stretch


@dataclass(slots=True)
class Grid1D:
    """
    Grid result (node-centered).

    Arrays are float64 / int64, C-contiguous.
    """
    # Mesh
    z: np.ndarray            # (N,) node coordinates [m], ascending
    dz: np.ndarray           # (N-1,) cell lengths [m]
    Vi: np.ndarray           # (N,) control-volume lengths [m]

    # Region maps
    cell_region: np.ndarray  # (N-1,) cell -> region
    node_region: np.ndarray  # (N,) node -> region (left cell wins at interfaces)
    Vr: np.ndarray           # (num_regions, N) control-volume share per region

    # Boundary regions (one node each in 1D)
    bregion_node: np.ndarray     # (num_bregions,) boundary region -> node
    bregion_regions: np.ndarray  # (num_bregions, 2) adjacent (left, right) region, -1 outside
    node_bregion: np.ndarray     # (N,) node -> boundary region, -1 interior

    layer_names: tuple = ()

    @property
    def num_nodes(self) -> int:
        return int(self.z.size)

    @property
    def num_regions(self) -> int:
        return int(self.Vr.shape[0])

    @property
    def num_bregions(self) -> int:
        return int(self.bregion_node.size)

    def region_nodes(self, region: int) -> np.ndarray:
        """Nodes with a nonzero control-volume share in `region`."""
        return np.flatnonzero(self.Vr[region] > 0.0)

    def region_cells(self, region: int) -> np.ndarray:
        return np.flatnonzero(self.cell_region == region)

    def adjacent_region(self, bregion: int) -> int:
        """Single bulk region touching an outer boundary region."""
        left, right = (int(r) for r in self.bregion_regions[bregion])
        if left >= 0 and right >= 0:
            raise ValueError(f"boundary region {bregion} is an inner interface")
        return left if left >= 0 else right


# ---------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------


def _as_c64(a: np.ndarray) -> np.ndarray:
    return np.ascontiguousarray(a, dtype=np.float64)


def _nodes_per_layer(t: np.ndarray, mesh: MeshSpec) -> np.ndarray:
    nl = t.size
    if mesh.per_layer_N is not None:
        perN = np.array(mesh.per_layer_N, dtype=int)
        if perN.size != nl:
            raise ValueError("per_layer_N length must match number of layers")
        if np.any(perN < 2):
            raise ValueError("each layer must have at least 2 nodes")
        return perN
    if mesh.hz_max is not None:
        return np.maximum(2, np.ceil(t / float(mesh.hz_max)).astype(int) + 1)
    if mesh.N_total is not None:
        # Proportional allocation
        w = t / np.sum(t)
        perN = np.maximum(2, np.floor(w * mesh.N_total).astype(int))
        deficit = mesh.N_total - int(np.sum(perN))
        order = np.argsort(-w)
        k = 0
        while deficit > 0:
            perN[order[k % nl]] += 1
            deficit -= 1
            k += 1
        return perN
    raise ValueError("provide one of: per_layer_N, hz_max, or N_total")


def _layer_nodes(z0: float, z1: float, Ni: int, mesh: MeshSpec) -> np.ndarray:
    if not (mesh.refine_interfaces and mesh.stretch_ratio > 1.0 and mesh.stretch_cells > 0):
        return np.linspace(z0, z1, int(Ni), endpoint=True)
    # Symmetric geometric stretching towards both layer ends; endpoints fixed
    cells = int(Ni) - 1
    r = float(mesh.stretch_ratio)
    n_side = min(int(mesh.stretch_cells), max(cells - 1, 0) // 2)
    w_side = r ** np.arange(n_side)
    w_mid = np.full(cells - 2 * n_side, r ** n_side)
    widths = np.concatenate((w_side, w_mid, w_side[::-1]))
    edges = np.concatenate(([0.0], np.cumsum(widths)))
    return z0 + (z1 - z0) * edges / edges[-1]


def build_grid(stack: StackSpec, mesh: MeshSpec) -> Grid1D:
    """Construct a node-centered 1D grid from a layered stack."""
    layers = list(stack.layers)
    if len(layers) < 1:
        raise ValueError("stack must contain at least one LayerSpec")

    t = np.array([ly.thickness for ly in layers], dtype=np.float64)
    if np.any(t <= 0.0):
        raise ValueError("layer thickness must be positive")
    z_ifaces = np.concatenate(([0.0], np.cumsum(t)))
    perN = _nodes_per_layer(t, mesh)

    regions = [i if ly.region is None else int(ly.region) for i, ly in enumerate(layers)]
    if min(regions) < 0:
        raise ValueError("region tags must be >= 0")
    num_regions = max(regions) + 1

    z_nodes: list[np.ndarray] = []
    cell_region: list[np.ndarray] = []
    iface_nodes: list[int] = []
    count = 0
    for i, Ni in enumerate(perN):
        z_i = _layer_nodes(z_ifaces[i], z_ifaces[i + 1], int(Ni), mesh)
        # drop first node for i>0 to avoid duplicates across layers
        if i > 0:
            z_i = z_i[1:]
            iface_nodes.append(count - 1)
        z_nodes.append(z_i)
        ncells = int(Ni) - 1
        cell_region.append(np.full(ncells, regions[i], dtype=np.int64))
        count += z_i.size

    z = _as_c64(np.concatenate(z_nodes))
    if not np.all(np.diff(z) > 0):
        raise RuntimeError("non-monotonic z grid constructed")
    creg = np.ascontiguousarray(np.concatenate(cell_region))

    # Metrics
    dz = _as_c64(np.diff(z))
    N = z.size
    Vi = np.empty_like(z)
    Vi[0] = 0.5 * dz[0]
    Vi[-1] = 0.5 * dz[-1]
    Vi[1:-1] = 0.5 * (dz[1:] + dz[:-1])

    Vr = np.zeros((num_regions, N), dtype=np.float64)
    np.add.at(Vr, (creg, np.arange(N - 1)), 0.5 * dz)
    np.add.at(Vr, (creg, np.arange(1, N)), 0.5 * dz)

    node_region = np.empty(N, dtype=np.int64)
    node_region[0] = creg[0]
    node_region[1:] = creg

    # Boundary regions: outer contacts first, then inner interfaces
    bnodes = [0, N - 1] + iface_nodes
    bregion_node = np.array(bnodes, dtype=np.int64)
    bregion_regions = np.full((len(bnodes), 2), -1, dtype=np.int64)
    bregion_regions[0, 1] = creg[0]
    bregion_regions[1, 0] = creg[-1]
    for b, node in enumerate(iface_nodes, start=2):
        bregion_regions[b] = (creg[node - 1], creg[node])
    node_bregion = np.full(N, -1, dtype=np.int64)
    node_bregion[bregion_node] = np.arange(len(bnodes))

    return Grid1D(
        z=z,
        dz=dz,
        Vi=_as_c64(Vi),
        cell_region=creg,
        node_region=node_region,
        Vr=Vr,
        bregion_node=bregion_node,
        bregion_regions=bregion_regions,
        node_bregion=node_bregion,
        layer_names=tuple(ly.name for ly in layers),
    )


def uniform_grid(length: float, N: int, region: int = 0) -> Grid1D:
    """Single-layer convenience grid (tests, quick studies)."""
    return build_grid(
        StackSpec(layers=(LayerSpec(name="bulk", thickness=length, region=region),)),
        MeshSpec(per_layer_N=(N,)),
    )


def list_interfaces(grid: Grid1D) -> np.ndarray:
    """Return the inner interface table (z, left_region, right_region, bregion)."""
    dt = np.dtype([("z", np.float64), ("left", np.int64), ("right", np.int64), ("bregion", np.int64)])
    rows = [
        (float(grid.z[grid.bregion_node[b]]), int(grid.bregion_regions[b, 0]),
         int(grid.bregion_regions[b, 1]), b)
        for b in range(2, grid.num_bregions)
    ]
    return np.array(rows, dtype=dt)
