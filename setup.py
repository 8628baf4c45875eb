from setuptools import setup

package_name = 'incremental_calibration'

setup(
    name=package_name,
    version='0.1.0',
    packages=[
        package_name,
        f'{package_name}.problem',
        f'{package_name}.backend',
        f'{package_name}.algorithms',
        f'{package_name}.core',
        f'{package_name}.lrf2d',
    ],
    package_dir={
        package_name: 'src',
        f'{package_name}.problem': 'src/problem',
        f'{package_name}.backend': 'src/backend',
        f'{package_name}.algorithms': 'src/algorithms',
        f'{package_name}.core': 'src/core',
        f'{package_name}.lrf2d': 'src/lrf2d',
    },
    python_requires='>=3.9',
    install_requires=['setuptools', 'numpy', 'scipy', 'PyYAML'],
    extras_require={
        'test': ['pytest'],
    },
    zip_safe=True,
    maintainer='root',
    maintainer_email='franche1984@gmail.com',
    description='Incremental nonlinear least-squares calibration with informative batch selection',
    license='MIT',
    entry_points={
        'console_scripts': [],
    },
)
