# make sure every file can run on any computers, avoid absolute paths and undownloaded packages

#pip install setuptools first if not installed
from setuptools import setup, find_packages
import os

# Read requirements
def read_requirements():
    req_file = os.path.join(os.path.dirname(__file__), 'requirements.txt')
    if os.path.exists(req_file):
        with open(req_file) as f:
            return [line.strip() for line in f if line.strip() and not line.startswith('#')]
    return [
        "pyyaml",
        "numpy",
        "scipy",
        "pyserial",
    ]

setup(
    name="lqr_balancing_bot",
    version="0.1.0",
    description="LQR Self-Balancing Robot",
    packages=find_packages(include=[
        'robot_dynamics',
        'robot_dynamics.*',
        'calibration',
        'calibration.*',
        'state_estimation',
        'state_estimation.*',
        'lqr',
        'lqr.*',
        'control_pipeline',
        'control_pipeline.*',
        'hardware',
        'hardware.*',
        'simulation',
        'simulation.*',
    ]),
    py_modules=['run_robot', 'run_simulation'],
    python_requires=">=3.8",
    install_requires=read_requirements(),
    extras_require={
        'test': ['pytest'],
    },
    package_data={
        '': ['*.yaml', '*.yml'],
    },
    include_package_data=True,
)
