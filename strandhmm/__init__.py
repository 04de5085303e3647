"""
StrandHMM - strand-state classification (CC/WC/WW) of genomic bins in
single-cell Strand-seq libraries with a negative-binomial HMM.
"""

__version__ = "0.1.0"

from strandhmm.core.hmm import StrandStateHMM, STATES
from strandhmm.core.distributions import NegativeBinomial, IndependentChannels, strand_state_emissions
from strandhmm.core.intervals import GenomeBins, Interval
