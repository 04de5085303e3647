"""Core HMM, emission distributions, binning and BAM counting."""

from strandhmm.core.hmm import StrandStateHMM, STATES, transition_matrix
from strandhmm.core.distributions import NegativeBinomial, IndependentChannels, strand_state_emissions
from strandhmm.core.intervals import GenomeBins, Interval, create_fixed_bins, read_bed_bins
from strandhmm.core.bam_reader import CellInfo, count_reads, get_sample_name
