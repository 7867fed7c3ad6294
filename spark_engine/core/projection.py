"""Project item embeddings to 3D for visualization.

PCA via the N x N Gram matrix (N items << D dimensions) and deflated power
iteration, then a uniform rescale into a fixed visual range. Similarity edges
are computed on the original embeddings, independent of the projection.
"""

import math
from typing import Any

import numpy as np

from spark_engine.core.config import get_settings
from spark_engine.core.logging import get_logger
from spark_engine.core.schemas_vectors import ProjectedPoint, SimilarityEdge, VectorSpaceResponse

logger = get_logger(__name__)

N_COMPONENTS = 3
EPS = 1e-12


def _power_iteration(matrix: np.ndarray, iterations: int, rng: np.random.Generator) -> np.ndarray:
    v = rng.random(matrix.shape[0]) - 0.5
    for _ in range(iterations):
        av = matrix @ v
        norm = np.linalg.norm(av)
        if norm < EPS:
            break
        v = av / norm
    return v


def pca_project(
    embeddings: list[list[float]],
    iterations: int = 50,
    visual_bound: float = 3.0,
    seed: int | None = None,
) -> list[tuple[float, float, float]]:
    """
    Project embeddings onto their top 3 principal components.

    Args:
        embeddings: N vectors of equal dimension
        iterations: Power iteration steps per component
        visual_bound: Max absolute coordinate after rescaling
        seed: RNG seed for the power iteration start vectors

    Returns:
        One (x, y, z) per embedding. Axes without signal (fewer than 3 items,
        or eigenvalue <= 1e-12) are 0.
    """
    n = len(embeddings)
    if n == 0:
        return []

    x = np.asarray(embeddings, dtype=np.float64)
    centered = x - x.mean(axis=0)
    gram = centered @ centered.T

    rng = np.random.default_rng(seed)
    coords = np.zeros((n, N_COMPONENTS))

    for c in range(min(N_COMPONENTS, n)):
        v = _power_iteration(gram, iterations, rng)
        eigenvalue = float(v @ gram @ v)
        if eigenvalue > EPS:
            coords[:, c] = v * math.sqrt(eigenvalue)
        # Deflate before extracting the next component
        gram = gram - eigenvalue * np.outer(v, v)

    max_abs = float(np.abs(coords).max())
    scale = visual_bound / max_abs if max_abs > EPS else 1.0
    coords *= scale

    return [(float(p[0]), float(p[1]), float(p[2])) for p in coords]


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity; 0 when either vector has no magnitude."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    dot = float(va @ vb)
    norm_product = float(va @ va) * float(vb @ vb)
    if norm_product <= EPS * EPS:
        return 0.0
    return dot / math.sqrt(norm_product)


def build_edges(
    ids: list[str],
    embeddings: list[list[float]],
    threshold: float = 0.5,
) -> list[SimilarityEdge]:
    """An edge for every pair whose similarity is strictly above the threshold."""
    edges = []
    for i in range(len(embeddings)):
        for j in range(i + 1, len(embeddings)):
            similarity = cosine_similarity(embeddings[i], embeddings[j])
            if similarity > threshold:
                edges.append(SimilarityEdge(from_=ids[i], to=ids[j], similarity=similarity))
    return edges


def project(items: list[dict[str, Any]]) -> VectorSpaceResponse:
    """Positions and similarity edges for items with embeddings."""
    valid = [item for item in items if item.get("embedding")]
    if not valid:
        return VectorSpaceResponse()

    dims = {len(item["embedding"]) for item in valid}
    if len(dims) > 1:
        # Mixed dimensions can't share a space; keep the most common one
        target = max(dims, key=lambda d: sum(1 for item in valid if len(item["embedding"]) == d))
        logger.warning(f"Dropping embeddings with dimension != {target} from projection")
        valid = [item for item in valid if len(item["embedding"]) == target]

    settings = get_settings()
    embeddings = [item["embedding"] for item in valid]
    ids = [str(item["id"]) for item in valid]

    positions = pca_project(
        embeddings,
        iterations=settings.PROJECTION_ITERATIONS,
        visual_bound=settings.PROJECTION_VISUAL_BOUND,
        seed=settings.PROJECTION_SEED,
    )
    points = [
        ProjectedPoint(
            id=item_id,
            type=item.get("type"),
            title=item.get("title"),
            summary=item.get("summary"),
            position=position,
        )
        for item_id, item, position in zip(ids, valid, positions, strict=True)
    ]
    edges = build_edges(ids, embeddings, settings.PROJECTION_EDGE_THRESHOLD)

    logger.info(f"Projected {len(points)} items, {len(edges)} edges")
    return VectorSpaceResponse(items=points, edges=edges)
