"""
K-means clustering implementation for studentmath.

This module assigns every student a persona label by running a
fixed-iteration k-means over the skill features. Initial centers are drawn
from an injected random generator so runs can be reproduced.
"""

import logging
import numpy as np
from typing import Any, Dict, List, Optional, Sequence

from studentmath.data.loader import Dataset

logger = logging.getLogger(__name__)


CLUSTER_FEATURES = [
    'attention',
    'focus',
    'comprehension',
    'retention',
]

DEFAULT_K = 3

DEFAULT_ITERATIONS = 20


class Cluster:
    """
    Represents a cluster in K-means clustering.
    """

    def __init__(self,
                 center: np.ndarray,
                 members: Optional[List[int]] = None,
                 id: Optional[int] = None):
        """
        Initialize a cluster with a center and optional members.

        Args:
            center: The center of the cluster
            members: Indices of members belonging to the cluster
            id: Persona index of the cluster
        """
        self.center = np.array(center, dtype=float)
        self.members = [] if members is None else list(members)
        self.id = id

    def add_member(self, idx: int) -> None:
        """
        Add a member to the cluster.

        Args:
            idx: Index of the member to add
        """
        self.members.append(idx)

    def clear_members(self) -> None:
        """Clear all members from the cluster."""
        self.members = []

    def update_center(self, data: np.ndarray) -> None:
        """
        Move the center to the mean of its members.

        A cluster without members collapses to the zero vector.

        Args:
            data: Data matrix containing all points
        """
        if not self.members:
            self.center = np.zeros(data.shape[1])
            return

        self.center = np.mean(data[self.members], axis=0)

    def __repr__(self) -> str:
        """String representation of the cluster."""
        return f"Cluster(id={self.id}, members={len(self.members)})"


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """
    Create the random generator used for center seeding.

    Args:
        seed: Fixed seed, or None for an entropy-seeded generator

    Returns:
        numpy Generator
    """
    return np.random.default_rng(seed)


def squared_distance(a: np.ndarray, b: np.ndarray) -> float:
    """
    Calculate the squared Euclidean distance between two vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Squared distance
    """
    diff = a - b
    return float(np.dot(diff, diff))


def init_clusters(data: np.ndarray, k: int, rng: Any) -> List[Cluster]:
    """
    Initialize k clusters on randomly sampled data points.

    Points are drawn with replacement, so two clusters may start on the
    same point.

    Args:
        data: Data matrix
        k: Number of clusters
        rng: Object with a numpy-Generator-style ``integers(low, high, size)``

    Returns:
        List of k clusters with ids 0..k-1 and no members
    """
    n_points = data.shape[0]
    indices = rng.integers(0, n_points, size=k)

    logger.debug(f"Seeding {k} clusters from rows {list(indices)}")

    return [Cluster(data[int(idx)], [], i) for i, idx in enumerate(indices)]


def nearest_cluster(point: np.ndarray, clusters: List[Cluster]) -> int:
    """
    Find the position of the cluster whose center is closest to a point.

    Ties go to the earliest cluster.

    Args:
        point: Data point
        clusters: Candidate clusters

    Returns:
        Position of the nearest cluster in ``clusters``
    """
    best = 0
    best_dist = float('inf')

    for i, cluster in enumerate(clusters):
        dist = squared_distance(point, cluster.center)
        if dist < best_dist:
            best_dist = dist
            best = i

    return best


def assign_points_to_clusters(data: np.ndarray, clusters: List[Cluster]) -> List[int]:
    """
    Assign each data point to the nearest cluster.

    Args:
        data: Data matrix
        clusters: List of clusters

    Returns:
        Cluster position for every row of ``data``
    """
    for cluster in clusters:
        cluster.clear_members()

    labels = []
    for i, point in enumerate(data):
        nearest = nearest_cluster(point, clusters)
        clusters[nearest].add_member(i)
        labels.append(nearest)

    return labels


def update_cluster_centers(data: np.ndarray, clusters: List[Cluster]) -> None:
    """
    Update the centers of all clusters.

    Args:
        data: Data matrix
        clusters: List of clusters
    """
    for cluster in clusters:
        cluster.update_center(data)


def cluster_step(data: np.ndarray, clusters: List[Cluster]) -> List[Cluster]:
    """
    Perform one step of K-means clustering.

    Args:
        data: Data matrix
        clusters: Current clusters

    Returns:
        New clusters; the input clusters are left untouched
    """
    clusters = [Cluster(c.center, [], c.id) for c in clusters]

    assign_points_to_clusters(data, clusters)
    update_cluster_centers(data, clusters)

    return clusters


def kmeans(data: np.ndarray,
           k: int = DEFAULT_K,
           iterations: int = DEFAULT_ITERATIONS,
           rng: Any = None) -> List[Cluster]:
    """
    Perform K-means clustering on the data.

    Always runs exactly ``iterations`` rounds; there is no convergence
    check. Every one of the k clusters is kept, including empty ones.

    Args:
        data: Data matrix
        k: Number of clusters
        iterations: Number of assign/update rounds
        rng: Random generator for seeding (entropy seeded if None)

    Returns:
        List of k clusters with members from the final round
    """
    if data.shape[0] == 0:
        raise ValueError("Cannot cluster an empty dataset")
    if k < 1:
        raise ValueError(f"k must be positive, got {k}")
    if iterations < 1:
        raise ValueError(f"iterations must be positive, got {iterations}")

    if rng is None:
        rng = make_rng()

    clusters = init_clusters(data, k, rng)

    for _ in range(iterations):
        clusters = cluster_step(data, clusters)

    empty = [c.id for c in clusters if not c.members]
    if empty:
        logger.debug(f"Clusters {empty} ended with no members")

    return clusters


def cluster_labels(clusters: List[Cluster], n_points: int) -> List[int]:
    """
    Flatten cluster memberships into one label per point.

    Args:
        clusters: Clusters from kmeans
        n_points: Number of points clustered

    Returns:
        Persona index for each point, in row order
    """
    labels = [-1] * n_points
    for cluster in clusters:
        for idx in cluster.members:
            labels[idx] = cluster.id
    return labels


def centroids_to_dicts(clusters: List[Cluster],
                       features: Sequence[str] = CLUSTER_FEATURES) -> List[Dict[str, float]]:
    """
    Convert cluster centers to feature-keyed mappings.

    Args:
        clusters: Clusters from kmeans
        features: Feature names matching the center coordinates

    Returns:
        One mapping per cluster, in cluster order
    """
    return [
        {feature: float(value) for feature, value in zip(features, cluster.center)}
        for cluster in clusters
    ]


def cluster_dataset(dataset: Dataset,
                    k: int = DEFAULT_K,
                    iterations: int = DEFAULT_ITERATIONS,
                    rng: Any = None,
                    features: Sequence[str] = CLUSTER_FEATURES) -> Dict[str, Any]:
    """
    Cluster a dataset and return the personas document.

    Args:
        dataset: Dataset to cluster
        k: Number of personas
        iterations: Number of k-means rounds
        rng: Random generator for seeding
        features: Features to cluster on

    Returns:
        {'personas': [{student_id, name, class, persona}], 'centroids': [...]}
    """
    data = dataset.matrix(features)
    clusters = kmeans(data, k, iterations, rng)
    labels = cluster_labels(clusters, data.shape[0])

    personas = [
        {
            'student_id': record.student_id,
            'name': record.name,
            'class': record.class_name,
            'persona': label
        }
        for record, label in zip(dataset, labels)
    ]

    return {
        'personas': personas,
        'centroids': centroids_to_dicts(clusters, features)
    }


def persona_counts(personas_doc: Dict[str, Any]) -> List[Dict[str, int]]:
    """
    Count students per persona.

    Args:
        personas_doc: Result from cluster_dataset

    Returns:
        [{'persona', 'count'}] sorted by persona, only for personas with members
    """
    counts = {}
    for entry in personas_doc['personas']:
        counts[entry['persona']] = counts.get(entry['persona'], 0) + 1

    return [{'persona': p, 'count': counts[p]} for p in sorted(counts)]
