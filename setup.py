from setuptools import setup

setup(
    name="hostprobe",
    version="1.0",
    py_modules=["hostprobe", "probe_config", "probe_errors", "pci_ids", "proc_tree", "cpu_model"],
    install_requires=["rich", "python-mpd2"],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "hostprobe=hostprobe:main",
        ],
    },
)
