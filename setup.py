from setuptools import setup

with open("README.md", "r") as fh:
    readme = fh.read()

setup(
  name = 'nidata',
  packages = ['nidata'],
  version = '0.1.0',
  license='Apache license 2.0',
  description = 'Decoding NIfTI-1 volumes and GIFTI surfaces into numpy arrays',
  long_description=readme,
  long_description_content_type="text/markdown",
  author = 'Qianqian Fang',
  author_email = 'fangqq@gmail.com',
  maintainer= 'Qianqian Fang',
  keywords = ['NIfTI', 'NIfTI-1', 'GIFTI', 'neuroimaging', 'MRI', 'surface', 'mesh', 'Decoder'],
  platforms="any",
  python_requires='>=3.8',
  install_requires=[
        'numpy>=1.16.0'
      ],
  entry_points={
        'console_scripts': ['nidata=nidata.__main__:main'],
      },
  classifiers=[
    'Development Status :: 4 - Beta',
    'Intended Audience :: Developers',
    'Intended Audience :: Science/Research',
    'License :: OSI Approved :: Apache Software License',
    'Programming Language :: Python :: 3',
    'Programming Language :: Python :: 3.8',
    'Programming Language :: Python :: 3.9',
    'Programming Language :: Python :: 3.10',
    'Programming Language :: Python :: 3.11',
    'Programming Language :: Python :: 3.12',
    'Topic :: Scientific/Engineering :: Medical Science Apps.',
    'Topic :: Software Development :: Libraries',
    'Topic :: Software Development :: Libraries :: Python Modules'
  ]
)
