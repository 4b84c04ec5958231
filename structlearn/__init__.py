'''
structlearn trains linear structured prediction models with
perceptron-style online learning.
The API provides

    * models (sequence HMMs, dependency and coreference edge models,
      rankers) whose parameters are lazily averaged
    * inference engines which you should be able to call in a standalone
      way (Viterbi, maximum branching, ranking), with loss augmented
      and partially labeled variants
    * training loops built around the two
'''
