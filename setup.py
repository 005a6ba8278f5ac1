from setuptools import setup, find_packages

setup(
    name='cellbc',
    version='0.1.0',
    url='http://github.com/cellbc/cellbc/',
    license='BSD-style Software License',
    author='cellbc developers',
    install_requires=[
        'biopython',
        'PyYAML',
    ],
    description='Add cell barcodes from a barcode read file to the read names of paired reads',
    package_dir={'': 'src'},
    packages=find_packages('src'),
    include_package_data=True,
    platforms='any',
    python_requires='>=3.8',
    entry_points={
        'console_scripts': [
            'fastq_add_cell = cellbc.read_utils:main',
        ],
    },
    extras_require={
        'test': ['pytest', 'mock'],
    }
)
