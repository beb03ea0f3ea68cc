from mcceval.genomes.models import Genome, GenomeKind
from mcceval.genomes.network import FeedForwardNetwork
from mcceval.genomes.factories import (
    BodyFactoryConfig,
    BrainFactoryConfig,
    MazeFactoryConfig,
    NavigatorFactoryConfig,
)
from mcceval.genomes.codec import GenomeCodec, decode, get_codec

__all__ = [
    "BodyFactoryConfig",
    "BrainFactoryConfig",
    "FeedForwardNetwork",
    "Genome",
    "GenomeCodec",
    "GenomeKind",
    "MazeFactoryConfig",
    "NavigatorFactoryConfig",
    "decode",
    "get_codec",
]
