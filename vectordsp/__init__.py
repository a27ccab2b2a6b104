"""Block-based audio DSP building blocks: buffers, filters, delays, resamplers and symbols."""

__version__ = "0.1.0"

__all__ = ["dsp_math", "symbol", "dsp_buffer", "filters", "delays", "functional"]