import sys, os
_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _root not in sys.path:
    sys.path.insert(0, _root)

from analysis.spike_analysis import read_ras, mean_firing_rate, spike_trains, isi_cv, participation_fraction, summarize_ras
