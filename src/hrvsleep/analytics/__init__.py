"""Analytics engine for HRV metrics and sleep detection from heart-rate streams.

Modules:
    rr_processing -- Ectopic rejection, artifact repair and data quality
    features      -- Time-domain HRV (RMSSD, SDNN, pNN50)
    time_domain   -- Rolling RMSSD over a live interval buffer
    frequency     -- Welch LF/HF spectral analysis
    dfa           -- Detrended fluctuation analysis (alpha1)
    epochs        -- 30-second epoch aggregation
    phases        -- Rule-based sleep phase classification
    detection     -- Online sleep onset / wake state machine
    summary       -- Night summary and sleep score
    coverage      -- RR sample coverage and data gaps
    confidence    -- Session confidence from coverage, HR smoothness and stability
    snapshot      -- One-shot HRV analysis of an RR batch
    pipeline      -- Live session wiring and report
"""

from hrvsleep.analytics.rr_processing import (
    process_rr_intervals,
    assess_quality,
    RRProcessorConfig,
    RRStreamFilter,
    ProcessedIntervalSet,
    DataQuality,
)
from hrvsleep.analytics.features import (
    compute_rmssd,
    sdnn,
    pnn50,
    time_domain_metrics,
    TimeDomainMetrics,
)
from hrvsleep.analytics.time_domain import HRVEngine, HRVEngineConfig
from hrvsleep.analytics.frequency import (
    analyze_frequency_domain,
    FrequencyConfig,
    FrequencyDomainMetrics,
    LFHFInterpretation,
)
from hrvsleep.analytics.dfa import calculate_alpha1, DFAConfig, DFAResult, DFAInterpretation
from hrvsleep.analytics.epochs import Epoch, EpochAggregator, EpochConfig, aggregate_epochs
from hrvsleep.analytics.phases import (
    SleepPhase,
    Baseline,
    classify,
    classify_epoch,
    classify_epochs,
    calculate_baseline,
)
from hrvsleep.analytics.detection import (
    SleepDetector,
    SleepState,
    DetectionConfig,
    AdaptiveBaseline,
    StateChange,
    sleep_probability,
)
from hrvsleep.analytics.summary import summarize_sleep, SleepSummary
from hrvsleep.analytics.coverage import RRCoverageTracker, CoverageReport, DataGap
from hrvsleep.analytics.confidence import score_confidence, SleepConfidence, ConfidenceLevel
from hrvsleep.analytics.snapshot import analyze_snapshot, HRVSnapshot
from hrvsleep.analytics.pipeline import SleepSessionPipeline, SessionReport, run_session

__all__ = [
    # rr_processing
    "process_rr_intervals",
    "assess_quality",
    "RRProcessorConfig",
    "RRStreamFilter",
    "ProcessedIntervalSet",
    "DataQuality",
    # features
    "compute_rmssd",
    "sdnn",
    "pnn50",
    "time_domain_metrics",
    "TimeDomainMetrics",
    # time_domain
    "HRVEngine",
    "HRVEngineConfig",
    # frequency
    "analyze_frequency_domain",
    "FrequencyConfig",
    "FrequencyDomainMetrics",
    "LFHFInterpretation",
    # dfa
    "calculate_alpha1",
    "DFAConfig",
    "DFAResult",
    "DFAInterpretation",
    # epochs
    "Epoch",
    "EpochAggregator",
    "EpochConfig",
    "aggregate_epochs",
    # phases
    "SleepPhase",
    "Baseline",
    "classify",
    "classify_epoch",
    "classify_epochs",
    "calculate_baseline",
    # detection
    "SleepDetector",
    "SleepState",
    "DetectionConfig",
    "AdaptiveBaseline",
    "StateChange",
    "sleep_probability",
    # summary
    "summarize_sleep",
    "SleepSummary",
    # coverage
    "RRCoverageTracker",
    "CoverageReport",
    "DataGap",
    # confidence
    "score_confidence",
    "SleepConfidence",
    "ConfidenceLevel",
    # snapshot
    "analyze_snapshot",
    "HRVSnapshot",
    # pipeline
    "SleepSessionPipeline",
    "SessionReport",
    "run_session",
]
