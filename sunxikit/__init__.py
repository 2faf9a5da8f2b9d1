"""Tools for Allwinner SoC boards: FEX and script.bin scripts, U-Boot DRAM output, PIO dumps, Phoenix images, SoC data and progress display."""

__version__ = "0.1.0"

__all__ = ["phoenix", "pio", "progress", "script", "script_bin", "script_fex", "script_uboot", "soc_info"]