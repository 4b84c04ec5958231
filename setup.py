'''
structlearn installation
'''

from setuptools import setup, find_packages

setup(name="structlearn",
      version="0.1",
      description="averaged perceptron training of structured "
      "prediction models",
      packages=find_packages(exclude=["tests"]),
      python_requires=">=3.6",
      install_requires=['joblib',
                        'numpy',
                        'scikit-learn',
                        'scipy >= 0.14.0',
                        'tabulate'],
      extras_require={'test': ['pytest']})
